"""RFC 7807 Problem Details exception handlers for FastAPI.

Every domain exception is rendered as an ``application/problem+json`` body.
The HTTP status, title and problem type come from the first entry in
``PROBLEM_TYPES`` the exception is an instance of, so subclasses listed
before their bases get their own type URI (``DuplicateIdentityError`` is
``/errors/duplicate-identity``, other conflicts ``/errors/conflict``).

Usage:
    from rollcall.infra.fastapi.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from rollcall.foundation.application import get_optional_context
from rollcall.foundation.domain.exceptions import (
    AlreadyAcceptedError,
    AuthenticationError,
    AuthorizationError,
    CodeSpaceExhaustedError,
    ConflictError,
    DomainError,
    DuplicateIdentityError,
    InvalidOrExpiredCodeError,
    NotFoundError,
    ResourceLimitExceededError,
    ServiceUnavailableError,
    ValidationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

# Seconds a client should wait before retrying after a 429 or 503.
RATE_LIMIT_RETRY_AFTER = 3600
UNAVAILABLE_RETRY_AFTER = 30


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response model.

    Standard fields are ``type``, ``title``, ``status``, ``detail`` and
    ``instance``. Extensions: ``error_code`` for client branching,
    ``context`` with sanitized structured data, ``correlation_id``
    to quote in support requests, and ``affordance`` naming a next step.
    """

    type: str = Field(
        ...,
        description="URI reference identifying problem type",
        examples=["/errors/duplicate-identity", "/errors/invalid-or-expired-code"],
    )
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., ge=400, le=599, description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: str | None = Field(default=None, description="Request path")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code",
        examples=["DUPLICATE_IDENTITY", "INVALID_OR_EXPIRED_CODE"],
    )
    context: dict[str, Any] | None = Field(default=None)
    correlation_id: str | None = Field(default=None)
    affordance: str | None = Field(
        default=None,
        description="Suggested next step for the client, e.g. \"login\"",
    )


@dataclass(frozen=True, slots=True)
class ProblemType:
    """How one family of domain errors is presented over HTTP."""

    exception_class: type[DomainError]
    status: int
    title: str
    type: str
    affordance: str | None = None


PROBLEM_TYPES: tuple[ProblemType, ...] = (
    ProblemType(
        DuplicateIdentityError,
        409,
        "Duplicate Identity",
        "/errors/duplicate-identity",
        affordance="login",
    ),
    ProblemType(AlreadyAcceptedError, 409, "Already Accepted", "/errors/already-accepted"),
    ProblemType(ConflictError, 409, "Conflict", "/errors/conflict"),
    ProblemType(
        InvalidOrExpiredCodeError, 410, "Code Invalid or Expired", "/errors/invalid-or-expired-code"
    ),
    ProblemType(AuthenticationError, 401, "Unauthorized", "/errors/unauthenticated"),
    ProblemType(AuthorizationError, 403, "Forbidden", "/errors/forbidden"),
    ProblemType(NotFoundError, 404, "Resource Not Found", "/errors/not-found"),
    ProblemType(ValidationError, 422, "Validation Error", "/errors/validation-error"),
    ProblemType(
        ResourceLimitExceededError,
        429,
        "Resource Limit Exceeded",
        "/errors/resource-limit-exceeded",
    ),
    ProblemType(
        CodeSpaceExhaustedError, 503, "Code Space Exhausted", "/errors/code-space-exhausted"
    ),
    ProblemType(
        ServiceUnavailableError, 503, "Service Unavailable", "/errors/service-unavailable"
    ),
    ProblemType(DomainError, 400, "Bad Request", "/errors/domain-error"),
)

_SENSITIVE_KEYS = frozenset(
    {"password", "secret", "admin_secret", "service_key", "token", "api_key", "credential"}
)

_SENSITIVE_PATTERNS = [
    (re.compile(r"\b(postgresql|postgres|redis)(\+\w+)?://[^@\s]*@\S*"), r"\1://[REDACTED]"),
    (
        re.compile(r"(password|secret|token|api[_-]?key)\s*=\s*['\"]?[^'\"\s]+['\"]?", re.I),
        r"\1=[REDACTED]",
    ),
    (re.compile(r"bearer\s+\S+", re.I), "Bearer [REDACTED]"),
]


def problem_type_for(exc: DomainError) -> ProblemType:
    """First matching entry of ``PROBLEM_TYPES``; ``DomainError`` always matches."""
    return next(p for p in PROBLEM_TYPES if isinstance(exc, p.exception_class))


def _correlation_id() -> str | None:
    ctx = get_optional_context()
    return ctx.correlation_id if ctx is not None else None


def _create_problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


def _sanitize_context(context: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop credential keys and make values JSON-safe. Empty becomes None."""
    if not context:
        return None
    sanitized = {
        key: _sanitize_value(value)
        for key, value in context.items()
        if key.lower() not in _SENSITIVE_KEYS
    }
    return sanitized or None


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        for pattern, replacement in _SENSITIVE_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, dict):
        return _sanitize_context(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize_value(v) for v in value]
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate any DomainError into its problem type.

    429 responses carry ``X-RateLimit-*`` and ``Retry-After`` headers, 503
    responses a ``Retry-After`` header. Server-side failures (5xx) are
    logged as warnings with the correlation id.
    """
    kind = problem_type_for(exc)
    correlation_id = _correlation_id()
    problem = ProblemDetail(
        type=kind.type,
        title=kind.title,
        status=kind.status,
        detail=_sanitize_value(str(exc)),
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
        correlation_id=correlation_id,
        affordance=kind.affordance,
    )
    response = _create_problem_response(problem)

    if isinstance(exc, ResourceLimitExceededError):
        response.headers["X-RateLimit-Limit"] = str(exc.limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, exc.limit - exc.current))
        response.headers["Retry-After"] = str(RATE_LIMIT_RETRY_AFTER)
    elif kind.status == 503:
        response.headers["Retry-After"] = str(UNAVAILABLE_RETRY_AFTER)

    if kind.status >= 500:
        logger.warning(
            "dependency_failure_response",
            extra={
                "error_code": exc.error_code,
                "path": str(request.url.path),
                "correlation_id": correlation_id,
            },
        )
    return response


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Translate FastAPI request validation failures to 422 with field errors."""
    errors = [
        {
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    problem = ProblemDetail(
        type="/errors/request-validation-error",
        title="Request Validation Error",
        status=422,
        detail="Request validation failed",
        instance=str(request.url.path),
        error_code="REQUEST_VALIDATION_ERROR",
        context={"errors": errors},
        correlation_id=_correlation_id(),
    )
    return _create_problem_response(problem)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all 500.

    The exception type and sanitized message are only exposed when the app
    was registered with ``expose_internals``.
    """
    correlation_id = _correlation_id() or "unknown"
    logger.exception(
        "unhandled_exception",
        extra={
            "correlation_id": correlation_id,
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )

    if getattr(request.app.state, "expose_internal_errors", False):
        detail = _sanitize_value(f"{type(exc).__name__}: {exc}")
        context: dict[str, Any] | None = {"exception_type": type(exc).__name__}
    else:
        detail = "An internal error occurred. Please contact support with the correlation ID."
        context = None

    problem = ProblemDetail(
        type="/errors/internal-error",
        title="Internal Server Error",
        status=500,
        detail=detail,
        instance=str(request.url.path),
        error_code="INTERNAL_ERROR",
        context=context,
        correlation_id=correlation_id,
    )
    return _create_problem_response(problem)


def register_exception_handlers(app: FastAPI, *, expose_internals: bool = False) -> None:
    """Register the problem-details handlers on ``app``.

    Leave ``FastAPI(debug=...)`` off and pass ``expose_internals`` instead:
    a debug app answers unhandled errors with Starlette's plain-text
    traceback and never reaches the catch-all handler.

    Starlette resolves handlers along the exception's MRO, so one handler on
    ``DomainError`` covers the whole hierarchy and ``problem_type_for`` picks
    the presentation.
    """
    app.state.expose_internal_errors = expose_internals
    app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        request_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
