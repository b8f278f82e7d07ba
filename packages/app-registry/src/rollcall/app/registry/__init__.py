"""Rollcall registry application: HTTP API, service wiring and background tasks."""

from rollcall.app.registry.app import create_registry_app
from rollcall.app.registry.services import RegistryServices, build_services
from rollcall.app.registry.settings import RegistrySettings, get_registry_settings
from rollcall.app.registry.tasks import (
    RegistryTasks,
    TaskiqVerificationNotifier,
    bind_services,
    register_tasks,
)

__all__ = [
    "RegistryServices",
    "RegistrySettings",
    "RegistryTasks",
    "TaskiqVerificationNotifier",
    "bind_services",
    "build_services",
    "create_registry_app",
    "get_registry_settings",
    "register_tasks",
]
