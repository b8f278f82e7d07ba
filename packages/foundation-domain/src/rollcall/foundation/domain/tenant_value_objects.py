"""Value objects for tenants and their codes.

Immutable, validated domain primitives. All validation occurs at
construction time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AccessCodeStatus(StrEnum):
    """Join code states.

    At most one code per tenant is ACTIVE. Regeneration moves the previous
    code to REVOKED, or to EXPIRED when its expiry had already passed.
    """

    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InvitationStatus(StrEnum):
    """Invitation states: PENDING -> ACCEPTED, or PENDING -> EXPIRED."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class InvitationMode(StrEnum):
    """How an invitation reaches its recipient.

    EMAIL binds the invitation to one address. CODE is an open code that
    anyone holding it may redeem once.
    """

    EMAIL = "email"
    CODE = "code"


@dataclass(frozen=True, slots=True)
class TenantName:
    """Validated tenant display name.

    Attributes:
        value: The validated name string (1-200 chars, unicode OK).

    Raises:
        ValueError: If name is empty, whitespace-only, or exceeds 200 chars.
    """

    value: str

    def __post_init__(self) -> None:
        stripped = self.value.strip()
        if not stripped:
            msg = "Tenant name cannot be empty"
            raise ValueError(msg)
        if len(stripped) > 200:
            msg = f"Tenant name too long: {len(stripped)} chars (max 200)"
            raise ValueError(msg)
        object.__setattr__(self, "value", stripped)
