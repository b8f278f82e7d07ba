"""Rollcall Infra FastAPI: app factory, error handlers, middleware, health."""

from rollcall.infra.fastapi._health import register_health_check
from rollcall.infra.fastapi._health import router as health_router
from rollcall.infra.fastapi.app_factory import create_app
from rollcall.infra.fastapi.error_handlers import (
    PROBLEM_MEDIA_TYPE,
    PROBLEM_TYPES,
    ProblemDetail,
    problem_type_for,
    register_exception_handlers,
)
from rollcall.infra.fastapi.lifespan import compose_lifespan
from rollcall.infra.fastapi.middleware import (
    RequestContextMiddleware,
    RequestIdMiddleware,
    get_request_id,
)
from rollcall.infra.fastapi.settings import AppSettings, CORSSettings

__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "PROBLEM_TYPES",
    "AppSettings",
    "CORSSettings",
    "ProblemDetail",
    "RequestContextMiddleware",
    "RequestIdMiddleware",
    "compose_lifespan",
    "create_app",
    "get_request_id",
    "health_router",
    "problem_type_for",
    "register_exception_handlers",
    "register_health_check",
]
