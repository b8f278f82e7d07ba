"""ASGI middleware binding trace and correlation ids to the log context.

Every log line written while a request is in flight, whether through
structlog or a stdlib logger, then carries ``trace_id``, ``span_id`` and
``correlation_id``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace

from rollcall.foundation.application import (
    MIDDLEWARE_PRIORITY_TRACE_CONTEXT,
    MiddlewareContribution,
    get_optional_context,
)

if TYPE_CHECKING:
    from collections.abc import Callable

_BOUND_KEYS = ("trace_id", "span_id", "correlation_id")


class TraceContextMiddleware:
    """Pure ASGI middleware; binds ids to structlog contextvars per request.

    Sits in the tracing band, inside the request-context middleware, so the
    correlation id is already set. Trace ids are only bound while a recording
    span exists.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            structlog.contextvars.bind_contextvars(
                trace_id=format(span_context.trace_id, "032x"),
                span_id=format(span_context.span_id, "016x"),
            )

        ctx = get_optional_context()
        if ctx is not None:
            structlog.contextvars.bind_contextvars(correlation_id=ctx.correlation_id)

        try:
            await self.app(scope, receive, send)
        finally:
            structlog.contextvars.unbind_contextvars(*_BOUND_KEYS)


contribution = MiddlewareContribution(
    TraceContextMiddleware, priority=MIDDLEWARE_PRIORITY_TRACE_CONTEXT
)
