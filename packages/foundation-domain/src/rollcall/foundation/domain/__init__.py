"""Rollcall Foundation Domain -- pure Python domain primitives.

This package provides the foundational building blocks shared by every
bounded context: exceptions, roles, value objects, and port interfaces.
"""

from rollcall.foundation.domain.exceptions import (
    AlreadyAcceptedError,
    AuthenticationError,
    AuthorizationError,
    CodeCollisionError,
    CodeSpaceExhaustedError,
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    DuplicateIdentityError,
    IdentityProviderUnavailableError,
    InvalidOrExpiredCodeError,
    NotFoundError,
    ResourceLimitExceededError,
    ServiceUnavailableError,
    StepTimeoutError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from rollcall.foundation.domain.ports import CodeGeneratorPort, IdentityGatewayPort
from rollcall.foundation.domain.roles import INVITABLE_ROLES, Role, parse_role
from rollcall.foundation.domain.tenant_value_objects import (
    AccessCodeStatus,
    InvitationMode,
    InvitationStatus,
    TenantName,
)
from rollcall.foundation.domain.user_value_objects import DisplayName, Email

__all__ = [
    "INVITABLE_ROLES",
    "AccessCodeStatus",
    "AlreadyAcceptedError",
    "AuthenticationError",
    "AuthorizationError",
    "CodeCollisionError",
    "CodeGeneratorPort",
    "CodeSpaceExhaustedError",
    "ConcurrentModificationError",
    "ConflictError",
    "DisplayName",
    "DomainError",
    "DuplicateIdentityError",
    "Email",
    "IdentityGatewayPort",
    "IdentityProviderUnavailableError",
    "InvalidOrExpiredCodeError",
    "InvitationMode",
    "InvitationStatus",
    "NotFoundError",
    "ResourceLimitExceededError",
    "Role",
    "ServiceUnavailableError",
    "StepTimeoutError",
    "StoreUnavailableError",
    "TenantName",
    "UnauthorizedError",
    "ValidationError",
    "parse_role",
]
