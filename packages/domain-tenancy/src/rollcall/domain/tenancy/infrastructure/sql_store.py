"""SQLAlchemy implementation of the tenant store.

Async repository over the tables in :mod:`.tables`. Every public method runs
in its own short transaction; conditional writes are single UPDATE
statements guarded by a version or status predicate, so they are atomic
without explicit locking.

Driver failures are translated at this boundary: unique-constraint
violations become the matching domain error, connectivity problems become
:class:`~rollcall.foundation.domain.exceptions.StoreUnavailableError`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from rollcall.domain.identity.records import AssignmentStatus, ProfileRecord, RoleAssignmentRecord
from rollcall.domain.tenancy.infrastructure.tables import (
    access_codes,
    code_reservations,
    invitations,
    profiles,
    role_assignments,
    tenants,
)
from rollcall.domain.tenancy.invitation import InvitationCode
from rollcall.domain.tenancy.tenant import AccessCode, CodeReservation, Tenant
from rollcall.foundation.domain.exceptions import (
    CodeCollisionError,
    ConcurrentModificationError,
    ConflictError,
    DuplicateIdentityError,
    NotFoundError,
    StoreUnavailableError,
)
from rollcall.foundation.domain.roles import Role
from rollcall.foundation.domain.tenant_value_objects import (
    AccessCodeStatus,
    InvitationMode,
    InvitationStatus,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeoutError, OSError)


# -- Row mapping --


def _tenant(row: Any) -> Tenant:
    return Tenant(
        id=row.id,
        name=row.name,
        active_code=row.active_code,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _access_code(row: Any) -> AccessCode:
    return AccessCode(
        code=row.code,
        tenant_id=row.tenant_id,
        status=AccessCodeStatus(row.status),
        generated_at=row.generated_at,
        expires_at=row.expires_at,
        generated_by=row.generated_by,
    )


def _access_code_values(code: AccessCode) -> dict[str, Any]:
    return {
        "code": code.code,
        "tenant_id": code.tenant_id,
        "status": code.status.value,
        "generated_at": code.generated_at,
        "expires_at": code.expires_at,
        "generated_by": code.generated_by,
    }


def _profile(row: Any) -> ProfileRecord:
    return ProfileRecord(
        identity_id=row.identity_id,
        tenant_id=row.tenant_id,
        role=Role(row.role),
        display_name=row.display_name,
        email=row.email,
        created_at=row.created_at,
    )


def _assignment(row: Any) -> RoleAssignmentRecord:
    return RoleAssignmentRecord(
        identity_id=row.identity_id,
        tenant_id=row.tenant_id,
        role=Role(row.role),
        supervisor=row.supervisor,
        status=AssignmentStatus(row.status),
        created_at=row.created_at,
    )


def _invitation(row: Any) -> InvitationCode:
    return InvitationCode(
        code=row.code,
        tenant_id=row.tenant_id,
        issued_by=row.issued_by,
        expires_at=row.expires_at,
        mode=InvitationMode(row.mode),
        role=Role(row.role),
        email=row.email,
        status=InvitationStatus(row.status),
        created_at=row.created_at,
        accepted_by=row.accepted_by,
        accepted_at=row.accepted_at,
    )


class SqlTenantStore:
    """Tenant store backed by a relational database.

    Args:
        session_factory: Callable returning an ``AsyncSession`` context
            manager, e.g. ``DatabaseManager.session_factory``.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except _UNAVAILABLE as exc:
            logger.warning(
                "tenant_store_unavailable",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StoreUnavailableError(operation, type(exc).__name__) from exc

    async def _code_taken(self, session: AsyncSession, code: str) -> bool:
        reserved = await session.scalar(
            select(code_reservations.c.code).where(code_reservations.c.code == code)
        )
        if reserved is not None:
            return True
        issued = await session.scalar(
            select(access_codes.c.code).where(access_codes.c.code == code)
        )
        return issued is not None

    # -- Code reservations --

    async def reserve_code(self, reservation: CodeReservation) -> None:
        async with self._transaction("reserve_code") as session:
            if await self._code_taken(session, reservation.code):
                raise CodeCollisionError(reservation.code)
            try:
                await session.execute(
                    insert(code_reservations).values(
                        code=reservation.code,
                        tenant_name=reservation.tenant_name,
                        reserved_at=reservation.reserved_at,
                        tenant_id=reservation.tenant_id,
                    )
                )
            except IntegrityError as exc:
                raise CodeCollisionError(reservation.code) from exc

    async def release_reservation(self, code: str) -> None:
        async with self._transaction("release_reservation") as session:
            await session.execute(delete(code_reservations).where(code_reservations.c.code == code))

    async def get_reservation(self, code: str) -> CodeReservation | None:
        async with self._transaction("get_reservation") as session:
            row = (
                await session.execute(
                    select(code_reservations).where(code_reservations.c.code == code)
                )
            ).first()
        if row is None:
            return None
        return CodeReservation(
            code=row.code,
            tenant_name=row.tenant_name,
            reserved_at=row.reserved_at,
            tenant_id=row.tenant_id,
        )

    # -- Tenants and access codes --

    async def create_tenant(self, tenant: Tenant, access_code: AccessCode) -> None:
        async with self._transaction("create_tenant") as session:
            try:
                await session.execute(
                    insert(tenants).values(
                        id=tenant.id,
                        name=tenant.name,
                        active_code=tenant.active_code,
                        version=tenant.version,
                        created_at=tenant.created_at,
                        updated_at=tenant.updated_at,
                    )
                )
                await session.execute(
                    insert(access_codes).values(**_access_code_values(access_code))
                )
            except IntegrityError as exc:
                raise CodeCollisionError(access_code.code) from exc
            await session.execute(
                update(code_reservations)
                .where(code_reservations.c.code == access_code.code)
                .values(tenant_id=tenant.id)
            )

    async def delete_tenant(self, tenant_id: UUID) -> None:
        async with self._transaction("delete_tenant") as session:
            await session.execute(delete(access_codes).where(access_codes.c.tenant_id == tenant_id))
            await session.execute(delete(tenants).where(tenants.c.id == tenant_id))

    async def get_tenant(self, tenant_id: UUID) -> Tenant | None:
        async with self._transaction("get_tenant") as session:
            row = (await session.execute(select(tenants).where(tenants.c.id == tenant_id))).first()
        return _tenant(row) if row is not None else None

    async def get_access_code(self, code: str) -> AccessCode | None:
        async with self._transaction("get_access_code") as session:
            row = (
                await session.execute(select(access_codes).where(access_codes.c.code == code))
            ).first()
        return _access_code(row) if row is not None else None

    async def list_access_codes(self, tenant_id: UUID) -> list[AccessCode]:
        async with self._transaction("list_access_codes") as session:
            rows = (
                await session.execute(
                    select(access_codes)
                    .where(access_codes.c.tenant_id == tenant_id)
                    .order_by(
                        access_codes.c.generated_at.desc(),
                        case((access_codes.c.status == "active", 0), else_=1),
                    )
                )
            ).all()
        return [_access_code(row) for row in rows]

    async def count_regenerations_since(self, tenant_id: UUID, since: datetime) -> int:
        async with self._transaction("count_regenerations_since") as session:
            count = await session.scalar(
                select(func.count())
                .select_from(access_codes)
                .where(
                    access_codes.c.tenant_id == tenant_id,
                    access_codes.c.generated_by.is_not(None),
                    access_codes.c.generated_at >= since,
                )
            )
        return int(count or 0)

    async def rotate_access_code(
        self,
        tenant_id: UUID,
        expected_version: int,
        new_code: AccessCode,
        now: datetime,
    ) -> Tenant:
        async with self._transaction("rotate_access_code") as session:
            # The guarded UPDATE also locks the tenant row until commit.
            result = await session.execute(
                update(tenants)
                .where(tenants.c.id == tenant_id, tenants.c.version == expected_version)
                .values(
                    active_code=new_code.code,
                    version=tenants.c.version + 1,
                    updated_at=now,
                )
            )
            if result.rowcount != 1:
                exists = await session.scalar(select(tenants.c.id).where(tenants.c.id == tenant_id))
                if exists is None:
                    raise NotFoundError("Tenant", tenant_id)
                raise ConcurrentModificationError(
                    "Tenant", tenant_id, expected_version=expected_version
                )

            if await self._code_taken(session, new_code.code):
                raise CodeCollisionError(new_code.code)

            active = access_codes.c.status == AccessCodeStatus.ACTIVE.value
            await session.execute(
                update(access_codes)
                .where(
                    access_codes.c.tenant_id == tenant_id,
                    active,
                    access_codes.c.expires_at.is_not(None),
                    access_codes.c.expires_at <= now,
                )
                .values(status=AccessCodeStatus.EXPIRED.value)
            )
            await session.execute(
                update(access_codes)
                .where(access_codes.c.tenant_id == tenant_id, active)
                .values(status=AccessCodeStatus.REVOKED.value)
            )
            try:
                await session.execute(insert(access_codes).values(**_access_code_values(new_code)))
            except IntegrityError as exc:
                raise CodeCollisionError(new_code.code) from exc

            row = (await session.execute(select(tenants).where(tenants.c.id == tenant_id))).one()
        return _tenant(row)

    # -- Profiles and role assignments --

    async def create_profile(self, profile: ProfileRecord) -> None:
        async with self._transaction("create_profile") as session:
            try:
                await session.execute(
                    insert(profiles).values(
                        identity_id=profile.identity_id,
                        tenant_id=profile.tenant_id,
                        role=profile.role.value,
                        display_name=profile.display_name,
                        email=profile.email,
                        created_at=profile.created_at,
                    )
                )
            except IntegrityError as exc:
                raise DuplicateIdentityError(
                    profile.email, identity_id=str(profile.identity_id), source="profile"
                ) from exc

    async def delete_profile(self, identity_id: UUID) -> None:
        async with self._transaction("delete_profile") as session:
            await session.execute(delete(profiles).where(profiles.c.identity_id == identity_id))

    async def get_profile(self, identity_id: UUID) -> ProfileRecord | None:
        async with self._transaction("get_profile") as session:
            row = (
                await session.execute(select(profiles).where(profiles.c.identity_id == identity_id))
            ).first()
        return _profile(row) if row is not None else None

    async def find_profile_by_email(self, email: str) -> ProfileRecord | None:
        async with self._transaction("find_profile_by_email") as session:
            row = (
                await session.execute(
                    select(profiles).where(profiles.c.email == email.strip().lower()).limit(1)
                )
            ).first()
        return _profile(row) if row is not None else None

    async def list_profiles(self, tenant_id: UUID) -> list[ProfileRecord]:
        async with self._transaction("list_profiles") as session:
            rows = (
                await session.execute(
                    select(profiles)
                    .where(profiles.c.tenant_id == tenant_id)
                    .order_by(profiles.c.created_at)
                )
            ).all()
        return [_profile(row) for row in rows]

    async def create_role_assignment(self, record: RoleAssignmentRecord) -> None:
        async with self._transaction("create_role_assignment") as session:
            try:
                await session.execute(
                    insert(role_assignments).values(
                        identity_id=record.identity_id,
                        tenant_id=record.tenant_id,
                        role=record.role.value,
                        supervisor=record.supervisor,
                        status=record.status.value,
                        created_at=record.created_at,
                    )
                )
            except IntegrityError as exc:
                raise ConflictError(
                    "Role assignment already exists",
                    identity_id=str(record.identity_id),
                    tenant_id=str(record.tenant_id),
                ) from exc

    async def delete_role_assignment(self, identity_id: UUID, tenant_id: UUID) -> None:
        async with self._transaction("delete_role_assignment") as session:
            await session.execute(
                delete(role_assignments).where(
                    role_assignments.c.identity_id == identity_id,
                    role_assignments.c.tenant_id == tenant_id,
                )
            )

    async def get_role_assignment(
        self, identity_id: UUID, tenant_id: UUID
    ) -> RoleAssignmentRecord | None:
        async with self._transaction("get_role_assignment") as session:
            row = (
                await session.execute(
                    select(role_assignments).where(
                        role_assignments.c.identity_id == identity_id,
                        role_assignments.c.tenant_id == tenant_id,
                    )
                )
            ).first()
        return _assignment(row) if row is not None else None

    async def list_role_assignments(
        self, tenant_id: UUID, status: AssignmentStatus | None = None
    ) -> list[RoleAssignmentRecord]:
        query = select(role_assignments).where(role_assignments.c.tenant_id == tenant_id)
        if status is not None:
            query = query.where(role_assignments.c.status == status.value)
        async with self._transaction("list_role_assignments") as session:
            rows = (await session.execute(query.order_by(role_assignments.c.created_at))).all()
        return [_assignment(row) for row in rows]

    async def activate_role_assignment(self, identity_id: UUID, tenant_id: UUID) -> bool:
        async with self._transaction("activate_role_assignment") as session:
            result = await session.execute(
                update(role_assignments)
                .where(
                    role_assignments.c.identity_id == identity_id,
                    role_assignments.c.tenant_id == tenant_id,
                    role_assignments.c.status == AssignmentStatus.PENDING.value,
                )
                .values(status=AssignmentStatus.ACTIVE.value)
            )
        return result.rowcount == 1

    # -- Invitations --

    async def create_invitation(self, invitation: InvitationCode) -> None:
        async with self._transaction("create_invitation") as session:
            try:
                await session.execute(
                    insert(invitations).values(
                        code=invitation.code,
                        tenant_id=invitation.tenant_id,
                        issued_by=invitation.issued_by,
                        mode=invitation.mode.value,
                        role=invitation.role.value,
                        email=invitation.email,
                        status=invitation.status.value,
                        created_at=invitation.created_at,
                        expires_at=invitation.expires_at,
                        accepted_by=invitation.accepted_by,
                        accepted_at=invitation.accepted_at,
                    )
                )
            except IntegrityError as exc:
                raise CodeCollisionError(invitation.code) from exc

    async def get_invitation(self, code: str) -> InvitationCode | None:
        async with self._transaction("get_invitation") as session:
            row = (
                await session.execute(select(invitations).where(invitations.c.code == code))
            ).first()
        return _invitation(row) if row is not None else None

    async def list_invitations(self, tenant_id: UUID) -> list[InvitationCode]:
        async with self._transaction("list_invitations") as session:
            rows = (
                await session.execute(
                    select(invitations)
                    .where(invitations.c.tenant_id == tenant_id)
                    .order_by(invitations.c.created_at.desc())
                )
            ).all()
        return [_invitation(row) for row in rows]

    async def accept_invitation(self, code: str, identity_id: UUID, now: datetime) -> bool:
        async with self._transaction("accept_invitation") as session:
            result = await session.execute(
                update(invitations)
                .where(
                    invitations.c.code == code,
                    invitations.c.status == InvitationStatus.PENDING.value,
                    invitations.c.expires_at > now,
                )
                .values(
                    status=InvitationStatus.ACCEPTED.value,
                    accepted_by=identity_id,
                    accepted_at=now,
                )
            )
        return result.rowcount == 1

    async def revert_invitation_acceptance(self, code: str, identity_id: UUID) -> None:
        async with self._transaction("revert_invitation_acceptance") as session:
            await session.execute(
                update(invitations)
                .where(
                    invitations.c.code == code,
                    invitations.c.status == InvitationStatus.ACCEPTED.value,
                    invitations.c.accepted_by == identity_id,
                )
                .values(status=InvitationStatus.PENDING.value, accepted_by=None, accepted_at=None)
            )

    async def expire_invitations(self, now: datetime) -> int:
        async with self._transaction("expire_invitations") as session:
            result = await session.execute(
                update(invitations)
                .where(
                    invitations.c.status == InvitationStatus.PENDING.value,
                    invitations.c.expires_at <= now,
                )
                .values(status=InvitationStatus.EXPIRED.value)
            )
        return int(result.rowcount)
