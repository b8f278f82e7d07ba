"""ASGI middleware for request ids and request context."""

from rollcall.infra.fastapi.middleware.request_context import RequestContextMiddleware
from rollcall.infra.fastapi.middleware.request_id import (
    RequestIdMiddleware,
    get_request_id,
)

__all__ = [
    "RequestContextMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
]
