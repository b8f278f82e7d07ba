"""Students joining a tenant with its shared join code.

Joining creates a student profile and a *pending* role assignment; the
student gains nothing until a teacher or the tenant admin approves them.
Revoking removes the student's profile and assignment from the tenant and
leaves the identity itself with the provider, so the person can join again
with a fresh code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rollcall.domain.identity.authorization import require_assignment
from rollcall.domain.identity.records import AssignmentStatus, ProfileRecord, RoleAssignmentRecord
from rollcall.domain.tenancy.access_codes import mask_code
from rollcall.domain.tenancy.invitations import profile_details
from rollcall.domain.tenancy.tenant import utcnow
from rollcall.foundation.application.saga import Saga, SagaStep
from rollcall.foundation.domain.exceptions import (
    DuplicateIdentityError,
    InvalidOrExpiredCodeError,
    NotFoundError,
)
from rollcall.foundation.domain.roles import Role

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from rollcall.domain.identity.membership import MembershipCache
    from rollcall.domain.tenancy.access_codes import AccessCodeLifecycle
    from rollcall.domain.tenancy.ports import TenantStorePort
    from rollcall.foundation.application.saga import StepInstrument

logger = logging.getLogger(__name__)

# Who may approve, list and revoke students.
STUDENT_MANAGERS = (Role.TENANT_ADMIN, Role.TEACHER)


@dataclass(frozen=True, slots=True)
class JoinedTenant:
    tenant_id: UUID
    tenant_name: str
    identity_id: UUID
    status: AssignmentStatus


@dataclass(frozen=True, slots=True)
class EnrolledStudent:
    """A student of a tenant with the state of their assignment."""

    identity_id: UUID
    display_name: str
    email: str
    status: AssignmentStatus
    joined_at: datetime


@dataclass
class _JoinState:
    tenant_id: UUID
    identity_id: UUID
    display_name: str
    email: str
    now: datetime


class StudentEnrollment:
    """Join-by-code, approval, listing and revocation of students.

    Args:
        store: Tenant store.
        codes: Join code lifecycle, used to resolve the code to a tenant.
        cache: Membership cache to drop revoked students from.
        instrument: Optional wrapper for join saga steps.
        clock: Returns the current time.
    """

    def __init__(
        self,
        store: TenantStorePort,
        codes: AccessCodeLifecycle,
        cache: MembershipCache | None = None,
        *,
        instrument: StepInstrument | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._codes = codes
        self._cache = cache
        self._clock = clock
        self._join_saga: Saga[_JoinState] = Saga(
            "student_join",
            [
                SagaStep("create_profile_record", self._create_profile, self._delete_profile),
                SagaStep(
                    "create_role_assignment_record",
                    self._create_role_assignment,
                    self._delete_role_assignment,
                ),
            ],
            instrument=instrument,
        )

    async def join_with_code(
        self,
        code: str,
        identity_id: UUID,
        email: str | None = None,
        display_name: str | None = None,
    ) -> JoinedTenant:
        """Enroll ``identity_id`` as a pending student of the code's tenant.

        Raises:
            InvalidOrExpiredCodeError: If the code admits no one.
            DuplicateIdentityError: If the identity already has a profile.
            ValidationError: If the supplied address or name is malformed.
        """
        verification = await self._codes.verify(code)
        if not verification.valid or verification.tenant_id is None:
            raise InvalidOrExpiredCodeError()
        if await self._store.get_profile(identity_id) is not None:
            raise DuplicateIdentityError(email or "", source="profile")

        name, address = profile_details(display_name, email)
        state = _JoinState(
            tenant_id=verification.tenant_id,
            identity_id=identity_id,
            display_name=name,
            email=address,
            now=self._clock(),
        )
        await self._join_saga.run(state)
        logger.info(
            "student_joined",
            extra={
                "tenant_id": str(state.tenant_id),
                "identity_id": str(identity_id),
                "code": mask_code(code.strip()),
            },
        )
        return JoinedTenant(
            tenant_id=state.tenant_id,
            tenant_name=verification.tenant_name or "",
            identity_id=identity_id,
            status=AssignmentStatus.PENDING,
        )

    async def approve(
        self, tenant_id: UUID, student_id: UUID, approver_id: UUID
    ) -> EnrolledStudent:
        """Activate a pending student. Approving an active student is a no-op.

        Raises:
            UnauthorizedError: If the approver is not active staff of the tenant.
            NotFoundError: If the identity is not a student of the tenant.
        """
        await require_assignment(
            self._store, approver_id, tenant_id, action="approve_student", roles=STUDENT_MANAGERS
        )
        await self._student(tenant_id, student_id)
        if await self._store.activate_role_assignment(student_id, tenant_id):
            logger.info(
                "student_approved",
                extra={
                    "tenant_id": str(tenant_id),
                    "identity_id": str(student_id),
                    "approved_by": str(approver_id),
                },
            )
        record = await self._student(tenant_id, student_id)
        profile = await self._store.get_profile(student_id)
        return EnrolledStudent(
            identity_id=student_id,
            display_name=profile.display_name if profile is not None else "",
            email=profile.email if profile is not None else "",
            status=record.status,
            joined_at=record.created_at,
        )

    async def revoke(self, tenant_id: UUID, student_id: UUID, requested_by: UUID) -> None:
        """Remove a student, pending or active, from the tenant.

        Raises:
            UnauthorizedError: If the requester is not active staff of the tenant.
            NotFoundError: If the identity is not a student of the tenant.
        """
        await require_assignment(
            self._store, requested_by, tenant_id, action="revoke_student", roles=STUDENT_MANAGERS
        )
        await self._student(tenant_id, student_id)
        # Assignment first: a leftover profile without one grants nothing.
        await self._store.delete_role_assignment(student_id, tenant_id)
        await self._store.delete_profile(student_id)
        if self._cache is not None:
            await self._cache.invalidate(student_id)
        logger.info(
            "student_revoked",
            extra={
                "tenant_id": str(tenant_id),
                "identity_id": str(student_id),
                "revoked_by": str(requested_by),
            },
        )

    async def list_students(
        self,
        tenant_id: UUID,
        requested_by: UUID,
        status: AssignmentStatus | None = None,
    ) -> list[EnrolledStudent]:
        """Students of a tenant, oldest first, optionally only one status."""
        await require_assignment(
            self._store, requested_by, tenant_id, action="list_students", roles=STUDENT_MANAGERS
        )
        assignments = await self._store.list_role_assignments(tenant_id, status)
        profiles = {p.identity_id: p for p in await self._store.list_profiles(tenant_id)}
        students = []
        for record in assignments:
            profile = profiles.get(record.identity_id)
            if record.role is not Role.STUDENT or profile is None:
                continue
            students.append(
                EnrolledStudent(
                    identity_id=record.identity_id,
                    display_name=profile.display_name,
                    email=profile.email,
                    status=record.status,
                    joined_at=record.created_at,
                )
            )
        return students

    async def _student(self, tenant_id: UUID, student_id: UUID) -> RoleAssignmentRecord:
        record = await self._store.get_role_assignment(student_id, tenant_id)
        if record is None or record.role is not Role.STUDENT:
            raise NotFoundError("Student", student_id, tenant_id=str(tenant_id))
        return record

    # -- Join steps --

    async def _create_profile(self, state: _JoinState) -> None:
        await self._store.create_profile(
            ProfileRecord(
                identity_id=state.identity_id,
                tenant_id=state.tenant_id,
                role=Role.STUDENT,
                display_name=state.display_name,
                email=state.email,
                created_at=state.now,
            )
        )

    async def _delete_profile(self, state: _JoinState) -> None:
        await self._store.delete_profile(state.identity_id)

    async def _create_role_assignment(self, state: _JoinState) -> None:
        await self._store.create_role_assignment(
            RoleAssignmentRecord(
                identity_id=state.identity_id,
                tenant_id=state.tenant_id,
                role=Role.STUDENT,
                status=AssignmentStatus.PENDING,
                created_at=state.now,
            )
        )

    async def _delete_role_assignment(self, state: _JoinState) -> None:
        await self._store.delete_role_assignment(state.identity_id, state.tenant_id)
