"""Invitation codes for joining an existing tenant.

Unlike the tenant's join code, any number of invitations may be pending for
a tenant at once. Each one is accepted at most once and expires on its own
schedule: PENDING -> ACCEPTED, or PENDING -> EXPIRED.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from rollcall.domain.tenancy.tenant import utcnow
from rollcall.foundation.domain.exceptions import AlreadyAcceptedError, InvalidOrExpiredCodeError
from rollcall.foundation.domain.roles import Role
from rollcall.foundation.domain.tenant_value_objects import InvitationMode, InvitationStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(frozen=True, slots=True)
class InvitationCode:
    """A single-use grant to join a tenant with a given role.

    Attributes:
        email: Bound recipient address for EMAIL mode, None for open codes.
        role: Role granted on acceptance.
    """

    code: str
    tenant_id: UUID
    issued_by: UUID
    expires_at: datetime
    mode: InvitationMode = InvitationMode.CODE
    role: Role = Role.STUDENT
    email: str | None = None
    status: InvitationStatus = InvitationStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    accepted_by: UUID | None = None
    accepted_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        if self.status is InvitationStatus.EXPIRED:
            return True
        return self.status is InvitationStatus.PENDING and self.expires_at <= now

    def ensure_acceptable(self, now: datetime) -> None:
        """Raise unless this invitation can be accepted at ``now``.

        Raises:
            AlreadyAcceptedError: If it was accepted before.
            InvalidOrExpiredCodeError: If it has expired.
        """
        if self.status is InvitationStatus.ACCEPTED:
            raise AlreadyAcceptedError(self.code)
        if self.is_expired(now):
            raise InvalidOrExpiredCodeError()

    def accepted(self, identity_id: UUID, now: datetime) -> InvitationCode:
        return replace(
            self,
            status=InvitationStatus.ACCEPTED,
            accepted_by=identity_id,
            accepted_at=now,
        )
