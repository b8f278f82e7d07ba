"""Rollcall Infra Observability: structlog logging and OpenTelemetry tracing."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from rollcall.foundation.application import (
    LIFESPAN_PRIORITY_OBSERVABILITY,
    LifespanContribution,
)
from rollcall.infra.observability.instrumentation import (
    SagaSpanInstrument,
    saga_step_span,
    set_span_error,
)
from rollcall.infra.observability.logging import (
    LoggingSettings,
    SensitiveDataProcessor,
    configure_logging,
    get_logger,
)
from rollcall.infra.observability.middleware import TraceContextMiddleware
from rollcall.infra.observability.tracing import (
    TracingSettings,
    configure_tracing,
    shutdown_tracing,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@asynccontextmanager
async def _observability_lifespan(app: Any) -> AsyncIterator[None]:
    """Configure logging and tracing first; flush spans last."""
    configure_logging()
    configure_tracing(app)
    try:
        yield
    finally:
        shutdown_tracing()


lifespan_contribution = LifespanContribution(
    hook=_observability_lifespan,
    priority=LIFESPAN_PRIORITY_OBSERVABILITY,
)

__all__ = [
    "LoggingSettings",
    "SagaSpanInstrument",
    "SensitiveDataProcessor",
    "TraceContextMiddleware",
    "TracingSettings",
    "configure_logging",
    "configure_tracing",
    "get_logger",
    "lifespan_contribution",
    "saga_step_span",
    "set_span_error",
    "shutdown_tracing",
]
