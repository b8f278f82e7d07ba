"""Request context management for cross-cutting concerns.

Provides a ContextVar-based mechanism for propagating request-scoped data
(acting identity, correlation ID) across the call stack without explicit
parameter passing. Saga steps and log records pick the correlation ID up
from here so a single registration can be followed end to end.

Usage:
    # In middleware (automatically populates context)
    from rollcall.foundation.application.context import set_request_context

    # In handlers/services
    from rollcall.foundation.application.context import get_current_identity_id

    identity_id = get_current_identity_id()  # Raises if anonymous
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextvars import Token
    from uuid import UUID


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Immutable container for request-scoped context data.

    Attributes:
        correlation_id: Unique ID for distributed tracing.
        identity_id: The identity acting on this request, if one was supplied.
    """

    correlation_id: str
    identity_id: UUID | None = None


# ContextVar for request-scoped data - None when no request is active
request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


class NoRequestContextError(RuntimeError):
    """Raised when request context is accessed outside of a request."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(
            detail
            or (
                "No request context available. "
                "Ensure this code is called within an HTTP request with context middleware."
            )
        )


def get_current_context() -> RequestContext:
    """Get the current request context.

    Raises:
        NoRequestContextError: If called outside of a request context.
    """
    ctx = request_context.get()
    if ctx is None:
        raise NoRequestContextError()
    return ctx


def get_optional_context() -> RequestContext | None:
    """Get the current request context, or None outside of a request."""
    return request_context.get()


def get_current_identity_id() -> UUID:
    """Get the acting identity from request context.

    Raises:
        NoRequestContextError: If there is no context or the request is anonymous.
    """
    identity_id = get_current_context().identity_id
    if identity_id is None:
        raise NoRequestContextError("Request carries no acting identity")
    return identity_id


def get_current_correlation_id() -> str:
    """Get the current correlation ID for distributed tracing.

    Raises:
        NoRequestContextError: If called outside of a request context.
    """
    return get_current_context().correlation_id


def set_request_context(
    correlation_id: str,
    identity_id: UUID | None = None,
) -> Token[RequestContext | None]:
    """Set the request context for the current async task.

    Should be called by middleware at the start of request handling.
    Returns a token that must be used to reset the context.
    """
    ctx = RequestContext(correlation_id=correlation_id, identity_id=identity_id)
    return request_context.set(ctx)


def clear_request_context(token: Token[RequestContext | None]) -> None:
    """Reset the request context using the token from set_request_context."""
    request_context.reset(token)
