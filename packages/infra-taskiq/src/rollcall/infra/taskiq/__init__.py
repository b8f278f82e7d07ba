"""Rollcall Infra TaskIQ -- background task broker, scheduler and lifespan."""

from rollcall.infra.taskiq.broker import (
    build_broker,
    build_result_backend,
    get_broker,
    get_scheduler,
)
from rollcall.infra.taskiq.lifespan import lifespan_contribution
from rollcall.infra.taskiq.settings import TaskIQSettings, get_taskiq_settings

__all__ = [
    "TaskIQSettings",
    "build_broker",
    "build_result_backend",
    "get_broker",
    "get_scheduler",
    "get_taskiq_settings",
    "lifespan_contribution",
]
