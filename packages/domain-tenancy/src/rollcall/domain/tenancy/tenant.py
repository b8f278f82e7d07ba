"""Tenant, join-code and code-reservation records.

A tenant and its first AccessCode are born together. After that the
tenant's ``active_code`` only changes through rotation, which bumps
``version`` so concurrent rotations can be detected with a conditional write.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from rollcall.foundation.domain.tenant_value_objects import AccessCodeStatus

if TYPE_CHECKING:
    from uuid import UUID


def utcnow() -> datetime:
    """Timezone-aware current time. The default clock for this package."""
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Tenant:
    """An organization (school) and the code members use to find it."""

    id: UUID
    name: str
    active_code: str
    version: int = 1
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def with_active_code(self, code: str, now: datetime) -> Tenant:
        return replace(self, active_code=code, version=self.version + 1, updated_at=now)


@dataclass(frozen=True, slots=True)
class AccessCode:
    """A shareable join code.

    Attributes:
        expires_at: None means the code never expires by time. Regenerated
            codes always carry an expiry.
        generated_by: Identity that requested a regeneration. None for the
            code issued at registration.
    """

    code: str
    tenant_id: UUID
    status: AccessCodeStatus = AccessCodeStatus.ACTIVE
    generated_at: datetime = field(default_factory=utcnow)
    expires_at: datetime | None = None
    generated_by: UUID | None = None

    def is_usable(self, now: datetime) -> bool:
        """Status and expiry are both checked; neither alone is enough."""
        if self.status is not AccessCodeStatus.ACTIVE:
            return False
        return self.expires_at is None or self.expires_at > now

    def retired_status(self, now: datetime) -> AccessCodeStatus:
        """Status an active code takes when it is replaced."""
        if self.expires_at is not None and self.expires_at <= now:
            return AccessCodeStatus.EXPIRED
        return AccessCodeStatus.REVOKED


@dataclass(frozen=True, slots=True)
class CodeReservation:
    """Claim on a code made before the owning tenant exists.

    ``tenant_id`` stays None until the tenant row is created.
    """

    code: str
    tenant_name: str
    reserved_at: datetime = field(default_factory=utcnow)
    tenant_id: UUID | None = None

    @property
    def confirmed(self) -> bool:
        return self.tenant_id is not None
