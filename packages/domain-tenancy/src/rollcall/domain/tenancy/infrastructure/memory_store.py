"""In-process tenant store for development and tests.

Same semantics as the SQL store, conditional writes included. A single
lock serializes writers, which is what the SQL store gets from its row
locks and unique constraints.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING

from rollcall.domain.identity.records import AssignmentStatus
from rollcall.foundation.domain.exceptions import (
    CodeCollisionError,
    ConcurrentModificationError,
    ConflictError,
    DuplicateIdentityError,
    NotFoundError,
)
from rollcall.foundation.domain.tenant_value_objects import AccessCodeStatus, InvitationStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from rollcall.domain.identity.records import ProfileRecord, RoleAssignmentRecord
    from rollcall.domain.tenancy.invitation import InvitationCode
    from rollcall.domain.tenancy.tenant import AccessCode, CodeReservation, Tenant


class InMemoryTenantStore:
    """Dictionary-backed tenant store. Records are immutable, so reads share them."""

    def __init__(self) -> None:
        self.tenants: dict[UUID, Tenant] = {}
        self.access_codes: dict[str, AccessCode] = {}
        self.reservations: dict[str, CodeReservation] = {}
        self.profiles: dict[UUID, ProfileRecord] = {}
        self.role_assignments: dict[tuple[UUID, UUID], RoleAssignmentRecord] = {}
        self.invitations: dict[str, InvitationCode] = {}
        self._lock = asyncio.Lock()

    def _code_taken(self, code: str) -> bool:
        return code in self.reservations or code in self.access_codes

    # -- Code reservations --

    async def reserve_code(self, reservation: CodeReservation) -> None:
        async with self._lock:
            if self._code_taken(reservation.code):
                raise CodeCollisionError(reservation.code)
            self.reservations[reservation.code] = reservation

    async def release_reservation(self, code: str) -> None:
        async with self._lock:
            self.reservations.pop(code, None)

    async def get_reservation(self, code: str) -> CodeReservation | None:
        return self.reservations.get(code)

    # -- Tenants and access codes --

    async def create_tenant(self, tenant: Tenant, access_code: AccessCode) -> None:
        async with self._lock:
            if access_code.code in self.access_codes or tenant.id in self.tenants:
                raise CodeCollisionError(access_code.code)
            self.tenants[tenant.id] = tenant
            self.access_codes[access_code.code] = access_code
            reservation = self.reservations.get(access_code.code)
            if reservation is not None:
                self.reservations[access_code.code] = replace(reservation, tenant_id=tenant.id)

    async def delete_tenant(self, tenant_id: UUID) -> None:
        async with self._lock:
            self.tenants.pop(tenant_id, None)
            for code in [c.code for c in self.access_codes.values() if c.tenant_id == tenant_id]:
                del self.access_codes[code]

    async def get_tenant(self, tenant_id: UUID) -> Tenant | None:
        return self.tenants.get(tenant_id)

    async def get_access_code(self, code: str) -> AccessCode | None:
        return self.access_codes.get(code)

    async def list_access_codes(self, tenant_id: UUID) -> list[AccessCode]:
        codes = [c for c in self.access_codes.values() if c.tenant_id == tenant_id]
        # Active first when a rotation stamps old and new with the same instant.
        return sorted(
            codes,
            key=lambda c: (c.generated_at, c.status is AccessCodeStatus.ACTIVE),
            reverse=True,
        )

    async def count_regenerations_since(self, tenant_id: UUID, since: datetime) -> int:
        return sum(
            1
            for c in self.access_codes.values()
            if c.tenant_id == tenant_id and c.generated_by is not None and c.generated_at >= since
        )

    async def rotate_access_code(
        self,
        tenant_id: UUID,
        expected_version: int,
        new_code: AccessCode,
        now: datetime,
    ) -> Tenant:
        async with self._lock:
            tenant = self.tenants.get(tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant", tenant_id)
            if tenant.version != expected_version:
                raise ConcurrentModificationError(
                    "Tenant", tenant_id, expected_version=expected_version
                )
            if self._code_taken(new_code.code):
                raise CodeCollisionError(new_code.code)
            for code in list(self.access_codes.values()):
                if code.tenant_id == tenant_id and code.status is AccessCodeStatus.ACTIVE:
                    self.access_codes[code.code] = replace(code, status=code.retired_status(now))
            self.access_codes[new_code.code] = new_code
            updated = tenant.with_active_code(new_code.code, now)
            self.tenants[tenant_id] = updated
            return updated

    # -- Profiles and role assignments --

    async def create_profile(self, profile: ProfileRecord) -> None:
        async with self._lock:
            if profile.identity_id in self.profiles:
                raise DuplicateIdentityError(
                    profile.email, identity_id=str(profile.identity_id), source="profile"
                )
            self.profiles[profile.identity_id] = profile

    async def delete_profile(self, identity_id: UUID) -> None:
        async with self._lock:
            self.profiles.pop(identity_id, None)

    async def get_profile(self, identity_id: UUID) -> ProfileRecord | None:
        return self.profiles.get(identity_id)

    async def find_profile_by_email(self, email: str) -> ProfileRecord | None:
        wanted = email.strip().lower()
        return next((p for p in self.profiles.values() if p.email == wanted), None)

    async def list_profiles(self, tenant_id: UUID) -> list[ProfileRecord]:
        found = [p for p in self.profiles.values() if p.tenant_id == tenant_id]
        return sorted(found, key=lambda p: p.created_at)

    async def create_role_assignment(self, record: RoleAssignmentRecord) -> None:
        key = (record.identity_id, record.tenant_id)
        async with self._lock:
            if key in self.role_assignments:
                raise ConflictError(
                    "Role assignment already exists",
                    identity_id=str(record.identity_id),
                    tenant_id=str(record.tenant_id),
                )
            self.role_assignments[key] = record

    async def delete_role_assignment(self, identity_id: UUID, tenant_id: UUID) -> None:
        async with self._lock:
            self.role_assignments.pop((identity_id, tenant_id), None)

    async def get_role_assignment(
        self, identity_id: UUID, tenant_id: UUID
    ) -> RoleAssignmentRecord | None:
        return self.role_assignments.get((identity_id, tenant_id))

    async def list_role_assignments(
        self, tenant_id: UUID, status: AssignmentStatus | None = None
    ) -> list[RoleAssignmentRecord]:
        found = [
            r
            for (_, tenant), r in self.role_assignments.items()
            if tenant == tenant_id and (status is None or r.status is status)
        ]
        return sorted(found, key=lambda r: r.created_at)

    async def activate_role_assignment(self, identity_id: UUID, tenant_id: UUID) -> bool:
        key = (identity_id, tenant_id)
        async with self._lock:
            record = self.role_assignments.get(key)
            if record is None or record.status is not AssignmentStatus.PENDING:
                return False
            self.role_assignments[key] = replace(record, status=AssignmentStatus.ACTIVE)
            return True

    # -- Invitations --

    async def create_invitation(self, invitation: InvitationCode) -> None:
        async with self._lock:
            if invitation.code in self.invitations:
                raise CodeCollisionError(invitation.code)
            self.invitations[invitation.code] = invitation

    async def get_invitation(self, code: str) -> InvitationCode | None:
        return self.invitations.get(code)

    async def list_invitations(self, tenant_id: UUID) -> list[InvitationCode]:
        found = [i for i in self.invitations.values() if i.tenant_id == tenant_id]
        return sorted(found, key=lambda i: i.created_at, reverse=True)

    async def accept_invitation(self, code: str, identity_id: UUID, now: datetime) -> bool:
        async with self._lock:
            invitation = self.invitations.get(code)
            if (
                invitation is None
                or invitation.status is not InvitationStatus.PENDING
                or invitation.expires_at <= now
            ):
                return False
            self.invitations[code] = invitation.accepted(identity_id, now)
            return True

    async def revert_invitation_acceptance(self, code: str, identity_id: UUID) -> None:
        async with self._lock:
            invitation = self.invitations.get(code)
            if (
                invitation is not None
                and invitation.status is InvitationStatus.ACCEPTED
                and invitation.accepted_by == identity_id
            ):
                self.invitations[code] = replace(
                    invitation,
                    status=InvitationStatus.PENDING,
                    accepted_by=None,
                    accepted_at=None,
                )

    async def expire_invitations(self, now: datetime) -> int:
        async with self._lock:
            stale = [
                i
                for i in self.invitations.values()
                if i.status is InvitationStatus.PENDING and i.expires_at <= now
            ]
            for invitation in stale:
                self.invitations[invitation.code] = replace(
                    invitation, status=InvitationStatus.EXPIRED
                )
            return len(stale)
