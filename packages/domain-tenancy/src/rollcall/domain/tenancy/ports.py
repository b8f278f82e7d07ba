"""Storage port for tenants, codes, profiles, assignments and invitations.

The store offers row-level reads and writes plus a few conditional writes
(compare-and-swap on a version or status). It does not offer transactions
spanning several calls; multi-record operations are sagas built on top.

Write methods that insert a code raise
:class:`~rollcall.foundation.domain.exceptions.CodeCollisionError` when the
code is already taken. Every method raises
:class:`~rollcall.foundation.domain.exceptions.StoreUnavailableError` when
the store cannot be reached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from rollcall.domain.identity.records import (
        AssignmentStatus,
        ProfileRecord,
        RoleAssignmentRecord,
    )
    from rollcall.domain.tenancy.invitation import InvitationCode
    from rollcall.domain.tenancy.tenant import AccessCode, CodeReservation, Tenant


@runtime_checkable
class TenantStorePort(Protocol):
    """Durable storage consumed by the registration and code services."""

    # -- Code reservations --

    async def reserve_code(self, reservation: CodeReservation) -> None:
        """Insert a reservation if the code is free in every code namespace."""
        ...

    async def release_reservation(self, code: str) -> None:
        """Delete a reservation. Absent reservations are ignored."""
        ...

    async def get_reservation(self, code: str) -> CodeReservation | None: ...

    # -- Tenants and access codes --

    async def create_tenant(self, tenant: Tenant, access_code: AccessCode) -> None:
        """Insert a tenant with its first active code and confirm the code's reservation."""
        ...

    async def delete_tenant(self, tenant_id: UUID) -> None:
        """Delete a tenant and all of its access codes. Idempotent."""
        ...

    async def get_tenant(self, tenant_id: UUID) -> Tenant | None: ...

    async def get_access_code(self, code: str) -> AccessCode | None: ...

    async def list_access_codes(self, tenant_id: UUID) -> list[AccessCode]:
        """All codes of a tenant, newest first."""
        ...

    async def count_regenerations_since(self, tenant_id: UUID, since: datetime) -> int:
        """Number of codes generated on request (not at registration) since ``since``."""
        ...

    async def rotate_access_code(
        self,
        tenant_id: UUID,
        expected_version: int,
        new_code: AccessCode,
        now: datetime,
    ) -> Tenant:
        """Replace the tenant's active code in one conditional write.

        Only if the tenant is still at ``expected_version``: retire the active
        code, insert ``new_code`` as active, point the tenant at it, bump the
        version. Readers never see zero or two active codes.

        Raises:
            ConcurrentModificationError: If the version moved on.
            CodeCollisionError: If ``new_code.code`` is taken.
            NotFoundError: If the tenant does not exist.
        """
        ...

    # -- Profiles and role assignments --

    async def create_profile(self, profile: ProfileRecord) -> None:
        """Insert a profile.

        Raises:
            DuplicateIdentityError: If the identity already has a profile.
        """
        ...

    async def delete_profile(self, identity_id: UUID) -> None: ...

    async def get_profile(self, identity_id: UUID) -> ProfileRecord | None: ...

    async def find_profile_by_email(self, email: str) -> ProfileRecord | None: ...

    async def list_profiles(self, tenant_id: UUID) -> list[ProfileRecord]:
        """Profiles of a tenant, oldest first."""
        ...

    async def create_role_assignment(self, record: RoleAssignmentRecord) -> None: ...

    async def delete_role_assignment(self, identity_id: UUID, tenant_id: UUID) -> None: ...

    async def get_role_assignment(
        self, identity_id: UUID, tenant_id: UUID
    ) -> RoleAssignmentRecord | None: ...

    async def list_role_assignments(
        self, tenant_id: UUID, status: AssignmentStatus | None = None
    ) -> list[RoleAssignmentRecord]:
        """Assignments of a tenant, oldest first, optionally only one status."""
        ...

    async def activate_role_assignment(self, identity_id: UUID, tenant_id: UUID) -> bool:
        """Flip pending -> active.

        Returns:
            True if this call performed the transition.
        """
        ...

    # -- Invitations --

    async def create_invitation(self, invitation: InvitationCode) -> None: ...

    async def get_invitation(self, code: str) -> InvitationCode | None: ...

    async def list_invitations(self, tenant_id: UUID) -> list[InvitationCode]:
        """All invitations of a tenant, newest first."""
        ...

    async def accept_invitation(self, code: str, identity_id: UUID, now: datetime) -> bool:
        """Flip pending -> accepted if still pending and unexpired at ``now``.

        Returns:
            True if this call performed the transition.
        """
        ...

    async def revert_invitation_acceptance(self, code: str, identity_id: UUID) -> None:
        """Flip accepted -> pending, only if ``identity_id`` accepted it."""
        ...

    async def expire_invitations(self, now: datetime) -> int:
        """Mark pending invitations expired at ``now``. Returns the count."""
        ...
