"""Profile and role-assignment records.

A ProfileRecord ties an identity to one tenant with one role. The
RoleAssignmentRecord carries the role-specific details and is written last
when an identity is provisioned: a profile without an assignment marks a
provisioning run that did not complete.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from rollcall.foundation.domain.roles import Role

if TYPE_CHECKING:
    from uuid import UUID


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AssignmentStatus(StrEnum):
    """Whether a role assignment is in force."""

    ACTIVE = "active"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class ProfileRecord:
    """One identity's membership of one tenant."""

    identity_id: UUID
    tenant_id: UUID
    role: Role
    display_name: str
    email: str
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class RoleAssignmentRecord:
    """Role-specific record for an identity within a tenant.

    Attributes:
        supervisor: True only for the tenant admin created at registration.
            Supervisors may manage the tenant's join code.
        status: Pending assignments grant nothing until activated.
    """

    identity_id: UUID
    tenant_id: UUID
    role: Role
    supervisor: bool = False
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.status is AssignmentStatus.ACTIVE

    @property
    def can_manage_codes(self) -> bool:
        return self.is_active and (self.role is Role.TENANT_ADMIN or self.supervisor)
