"""What a package can add to a Rollcall application.

Packages describe middleware, error handlers and lifespan hooks with these
records and advertise them under the ``rollcall.*`` entry point groups; the
app factory orders them by priority. Nothing here imports a web framework.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any

# Middleware bands, lowest outermost: 0-99 request identity, 100-199 tracing,
# 200-499 application.
MIDDLEWARE_PRIORITY_MIN = 0
MIDDLEWARE_PRIORITY_MAX = 499
MIDDLEWARE_PRIORITY_REQUEST_ID = 10
MIDDLEWARE_PRIORITY_REQUEST_CONTEXT = 50
MIDDLEWARE_PRIORITY_TRACE_CONTEXT = 150

# Lifespan hooks start in ascending priority and stop in reverse.
LIFESPAN_PRIORITY_OBSERVABILITY = 50
LIFESPAN_PRIORITY_PERSISTENCE = 75
LIFESPAN_PRIORITY_TASKIQ = 150
LIFESPAN_PRIORITY_SERVICES = 200

LifespanHook = Callable[[Any], AbstractAsyncContextManager[None]]
ExceptionHandler = Callable[[Any, Exception], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class MiddlewareContribution:
    """An ASGI middleware class plus the keyword arguments it is added with."""

    middleware_class: type[Any]
    priority: int = 400
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not MIDDLEWARE_PRIORITY_MIN <= self.priority <= MIDDLEWARE_PRIORITY_MAX:
            msg = (
                f"Middleware priority must be between {MIDDLEWARE_PRIORITY_MIN} "
                f"and {MIDDLEWARE_PRIORITY_MAX}, got {self.priority}"
            )
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ErrorHandlerContribution:
    """Handler for one exception class; registered after the problem-details ones."""

    exception_class: type[BaseException]
    handler: ExceptionHandler


@dataclass(frozen=True, slots=True)
class LifespanContribution:
    """A startup/shutdown hook: ``hook(app)`` returns an async context manager."""

    hook: LifespanHook
    priority: int = 500
