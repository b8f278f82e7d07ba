"""Rollcall Foundation Application -- application layer patterns."""

from rollcall.foundation.application.context import (
    NoRequestContextError,
    RequestContext,
    clear_request_context,
    get_current_context,
    get_current_correlation_id,
    get_current_identity_id,
    get_optional_context,
    set_request_context,
)
from rollcall.foundation.application.contributions import (
    LIFESPAN_PRIORITY_OBSERVABILITY,
    LIFESPAN_PRIORITY_PERSISTENCE,
    LIFESPAN_PRIORITY_SERVICES,
    LIFESPAN_PRIORITY_TASKIQ,
    MIDDLEWARE_PRIORITY_REQUEST_CONTEXT,
    MIDDLEWARE_PRIORITY_REQUEST_ID,
    MIDDLEWARE_PRIORITY_TRACE_CONTEXT,
    ErrorHandlerContribution,
    LifespanContribution,
    MiddlewareContribution,
)
from rollcall.foundation.application.discovery import (
    GROUP_ERROR_HANDLERS,
    GROUP_LIFESPAN,
    GROUP_MIDDLEWARE,
    GROUP_ROUTERS,
    DiscoveredContribution,
    discover,
)
from rollcall.foundation.application.resolution import ResolutionSource, Resolved, resolve
from rollcall.foundation.application.saga import (
    CompensationFailure,
    Saga,
    SagaReport,
    SagaStep,
    StepInstrument,
)

__all__ = [
    "GROUP_ERROR_HANDLERS",
    "GROUP_LIFESPAN",
    "GROUP_MIDDLEWARE",
    "GROUP_ROUTERS",
    "LIFESPAN_PRIORITY_OBSERVABILITY",
    "LIFESPAN_PRIORITY_PERSISTENCE",
    "LIFESPAN_PRIORITY_SERVICES",
    "LIFESPAN_PRIORITY_TASKIQ",
    "MIDDLEWARE_PRIORITY_REQUEST_CONTEXT",
    "MIDDLEWARE_PRIORITY_REQUEST_ID",
    "MIDDLEWARE_PRIORITY_TRACE_CONTEXT",
    "CompensationFailure",
    "DiscoveredContribution",
    "ErrorHandlerContribution",
    "LifespanContribution",
    "MiddlewareContribution",
    "NoRequestContextError",
    "RequestContext",
    "ResolutionSource",
    "Resolved",
    "Saga",
    "SagaReport",
    "SagaStep",
    "StepInstrument",
    "clear_request_context",
    "discover",
    "get_current_context",
    "get_current_correlation_id",
    "get_current_identity_id",
    "get_optional_context",
    "resolve",
    "set_request_context",
]
