"""Errors raised by the onboarding domain.

Every error carries a class-level ``error_code`` and a ``context`` dict of
snake_case keys. The HTTP layer turns them into problem documents; loggers
get the context through ``str(error)``.

Families: 404 :class:`NotFoundError`, 422 :class:`ValidationError`, 409
:class:`ConflictError` and subclasses, 410 :class:`InvalidOrExpiredCodeError`,
401/403 the auth errors, 429 :class:`ResourceLimitExceededError` and 503
:class:`ServiceUnavailableError` with its collaborator outages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID

__all__ = [
    "AlreadyAcceptedError",
    "AuthenticationError",
    "AuthorizationError",
    "CodeCollisionError",
    "CodeSpaceExhaustedError",
    "ConcurrentModificationError",
    "ConflictError",
    "DomainError",
    "DuplicateIdentityError",
    "IdentityProviderUnavailableError",
    "InvalidOrExpiredCodeError",
    "NotFoundError",
    "ResourceLimitExceededError",
    "ServiceUnavailableError",
    "StepTimeoutError",
    "StoreUnavailableError",
    "UnauthorizedError",
    "ValidationError",
]


class DomainError(Exception):
    """Root of the hierarchy. Never raised directly outside tests.

    Example:
        >>> str(DomainError("Registration failed", {"tenant_name": "Oak"}))
        'Registration failed (tenant_name=Oak)'
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, context={self.context!r})"


class NotFoundError(DomainError):
    """A tenant, membership or invitation that does not exist."""

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: UUID | str, **context: Any) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            {"resource_type": resource_type, "resource_id": str(resource_id), **context},
        )


class ValidationError(DomainError):
    """Input the domain refuses, e.g. an unknown role or a blank tenant name.

    Example:
        >>> ValidationError("role", "Unknown role: 'janitor'").message
        "Validation failed for 'role': Unknown role: 'janitor'"
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str, **context: Any) -> None:
        self.field = field
        self.reason = reason
        super().__init__(
            f"Validation failed for '{field}': {reason}",
            {"field": field, "reason": reason, **context},
        )


class ConflictError(DomainError):
    """The request clashes with what is already stored."""

    error_code: str = "CONFLICT"

    def __init__(self, reason: str, **context: Any) -> None:
        self.reason = reason
        super().__init__(f"Conflict: {reason}", context)


class DuplicateIdentityError(ConflictError):
    """Raised when an address already belongs to an identity.

    Maps to HTTP 409 Conflict with its own problem type, so clients can
    offer a "log in instead" path rather than a generic retry.

    Attributes:
        error_code: "DUPLICATE_IDENTITY" (class constant).
        email: The conflicting address.
    """

    error_code: str = "DUPLICATE_IDENTITY"

    def __init__(self, email: str, **context: Any) -> None:
        self.email = email
        super().__init__(
            "An account with this email address already exists",
            email=email,
            **context,
        )


class ConcurrentModificationError(ConflictError):
    """Raised when a conditional write loses against a concurrent writer.

    Maps to HTTP 409 Conflict. Callers may retry the whole operation.
    """

    error_code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, resource_type: str, resource_id: UUID | str, **context: Any) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} {resource_id} was modified concurrently",
            resource_type=resource_type,
            resource_id=str(resource_id),
            **context,
        )


class AlreadyAcceptedError(ConflictError):
    """Raised when an invitation code has already been accepted.

    Maps to HTTP 409 Conflict.
    """

    error_code: str = "ALREADY_ACCEPTED"

    def __init__(self, code: str, **context: Any) -> None:
        super().__init__("Invitation has already been accepted", code=code, **context)


class CodeCollisionError(DomainError):
    """Raised by a store when a candidate code is already taken.

    Transient: the component that owns the code retries generation and the
    error only escapes as :class:`CodeSpaceExhaustedError`.
    """

    error_code: str = "CODE_COLLISION"

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__("Generated code is already in use", {"code": code})


class CodeSpaceExhaustedError(DomainError):
    """Raised when no free code was found within the retry budget.

    Maps to HTTP 503 Service Unavailable.
    """

    error_code: str = "CODE_SPACE_EXHAUSTED"

    def __init__(self, attempts: int, **extra_context: Any) -> None:
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique code after {attempts} attempts",
            {"attempts": attempts, **extra_context},
        )


class InvalidOrExpiredCodeError(DomainError):
    """Raised when a join or invitation code does not grant access.

    Maps to HTTP 410 Gone. Deliberately does not say whether the code
    never existed, was revoked, or ran out of time.
    """

    error_code: str = "INVALID_OR_EXPIRED_CODE"

    def __init__(self, message: str = "That code is invalid or has expired") -> None:
        super().__init__(message)


class AuthenticationError(DomainError):
    """The request names no acting identity, or an unusable one.

    ``error_code`` may be overridden per instance, e.g. ``MISSING_IDENTITY``.
    """

    error_code: str = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str = "AUTHENTICATION_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.error_code = error_code
        super().__init__(message, context)


class AuthorizationError(DomainError):
    """Raised when an identity lacks the required role.

    Maps to HTTP 403 Forbidden.
    """

    error_code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """Raised when an identity's role assignment does not permit an action.

    Authorization is always decided from stored role assignments, never
    from role claims supplied by the caller.

    Example:
        >>> raise UnauthorizedError("issue_invitation", identity_id="abc", tenant_id="t1")
    """

    error_code: str = "UNAUTHORIZED"

    def __init__(self, action: str, **context: Any) -> None:
        self.action = action
        super().__init__(
            f"Not permitted to {action.replace('_', ' ')}",
            {"action": action, **context},
        )


class ResourceLimitExceededError(DomainError):
    """Raised when a tenant exceeds a configured rate or resource limit.

    Maps to HTTP 429 Too Many Requests.

    Example:
        >>> raise ResourceLimitExceededError("code regenerations", limit=5, current=5)
        ResourceLimitExceededError: Tenant has reached limit of 5 code regenerations
    """

    error_code: str = "RESOURCE_LIMIT_EXCEEDED"

    def __init__(
        self,
        resource: str,
        limit: int,
        current: int,
        **extra_context: Any,
    ) -> None:
        self.resource = resource
        self.limit = limit
        self.current = current
        message = f"Tenant has reached limit of {limit} {resource}"
        context = {
            "resource": resource,
            "limit": limit,
            "current": current,
            **extra_context,
        }
        super().__init__(message, context)


class ServiceUnavailableError(DomainError):
    """Base for failures of an external collaborator.

    Maps to HTTP 503 Service Unavailable. Never retried silently.
    """

    error_code: str = "SERVICE_UNAVAILABLE"


class StoreUnavailableError(ServiceUnavailableError):
    """Raised when the tenant store cannot be reached."""

    error_code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        super().__init__(
            f"Store unavailable during {operation}",
            {"operation": operation, "detail": detail} if detail else {"operation": operation},
        )


class IdentityProviderUnavailableError(ServiceUnavailableError):
    """Raised when the identity provider cannot be reached or misbehaves."""

    error_code: str = "IDENTITY_PROVIDER_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        super().__init__(
            f"Identity provider unavailable during {operation}",
            {"operation": operation, "detail": detail} if detail else {"operation": operation},
        )


class StepTimeoutError(ServiceUnavailableError):
    """Raised when a saga step exceeds its time budget.

    The step is treated as failed; nothing it may have done remotely is
    assumed to have happened.
    """

    error_code: str = "STEP_TIMEOUT"

    def __init__(self, saga: str, step: str, timeout: float) -> None:
        self.saga = saga
        self.step = step
        self.timeout = timeout
        super().__init__(
            f"Step '{step}' of {saga} timed out after {timeout:g}s",
            {"saga": saga, "step": step, "timeout_seconds": timeout},
        )
