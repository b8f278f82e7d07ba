"""Invitation issuing and acceptance for already-provisioned tenants.

Issuing is authorized from the issuer's stored role assignment. Acceptance
is a small saga of its own: claim the invitation with a conditional write,
then create the profile and role assignment, undoing in reverse on failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rollcall.domain.identity.authorization import require_assignment
from rollcall.domain.identity.records import ProfileRecord, RoleAssignmentRecord
from rollcall.domain.tenancy.access_codes import mask_code
from rollcall.domain.tenancy.invitation import InvitationCode
from rollcall.domain.tenancy.settings import InvitationSettings
from rollcall.domain.tenancy.tenant import utcnow
from rollcall.foundation.application.saga import Saga, SagaStep
from rollcall.foundation.domain.exceptions import (
    AlreadyAcceptedError,
    CodeCollisionError,
    CodeSpaceExhaustedError,
    DuplicateIdentityError,
    InvalidOrExpiredCodeError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from rollcall.foundation.domain.roles import INVITABLE_ROLES, Role
from rollcall.foundation.domain.tenant_value_objects import InvitationMode, InvitationStatus
from rollcall.foundation.domain.user_value_objects import DisplayName, Email

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from rollcall.domain.tenancy.ports import TenantStorePort
    from rollcall.foundation.application.saga import StepInstrument
    from rollcall.foundation.domain.ports import CodeGeneratorPort, IdentityGatewayPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedInvitation:
    code: str
    expires_at: datetime
    mode: InvitationMode
    role: Role


@dataclass(frozen=True, slots=True)
class AcceptedInvitation:
    tenant_id: UUID
    role: Role
    identity_id: UUID


def profile_details(display_name: str | None, email: str | None) -> tuple[str, str]:
    """Validated ``(display_name, email)`` for a new profile.

    The address is normalized the way identities are keyed; a missing name
    falls back to the address's local part.
    """
    address: Email | None = None
    if email and email.strip():
        try:
            address = Email(email)
        except ValueError as exc:
            raise ValidationError("email", str(exc)) from exc
    try:
        if display_name and display_name.strip():
            name = DisplayName(display_name)
        elif address is not None:
            name = DisplayName.from_email(address)
        else:
            name = DisplayName("member")
    except ValueError as exc:
        raise ValidationError("display_name", str(exc)) from exc
    return name.value, address.value if address is not None else ""


@dataclass
class _AcceptState:
    invitation: InvitationCode
    identity_id: UUID
    display_name: str
    email: str
    now: datetime


class InvitationIssuer:
    """Issues, lists, accepts and expires invitation codes.

    Args:
        store: Tenant store.
        generator: Source of candidate codes.
        gateway: Identity provider, used to match email-bound invitations.
        settings: Invitation policy; read from the environment when omitted.
        instrument: Optional wrapper for acceptance saga steps.
        clock: Returns the current time.
    """

    def __init__(
        self,
        store: TenantStorePort,
        generator: CodeGeneratorPort,
        gateway: IdentityGatewayPort,
        settings: InvitationSettings | None = None,
        *,
        instrument: StepInstrument | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._generator = generator
        self._gateway = gateway
        self._settings = settings or InvitationSettings()
        self._clock = clock
        self._accept_saga: Saga[_AcceptState] = Saga(
            "invitation_acceptance",
            [
                SagaStep("claim_invitation", self._claim, self._unclaim),
                # An identity may race another acceptance, so a failed insert
                # is never undone: the record could belong to the other run.
                SagaStep("create_profile_record", self._create_profile, self._delete_profile),
                SagaStep(
                    "create_role_assignment_record",
                    self._create_role_assignment,
                    self._delete_role_assignment,
                ),
            ],
            instrument=instrument,
        )

    async def issue(
        self,
        tenant_id: UUID,
        issuer_id: UUID,
        mode: InvitationMode,
        email: str | None = None,
        role: Role = Role.STUDENT,
    ) -> IssuedInvitation:
        """Create a pending invitation.

        Raises:
            ValidationError: If the role or email is not acceptable.
            UnauthorizedError: If the issuer may not invite ``role``.
            NotFoundError: If the tenant does not exist.
            CodeSpaceExhaustedError: If every candidate collided.
        """
        if role is Role.TENANT_ADMIN:
            raise ValidationError("role", "Invitations cannot grant tenant_admin")
        bound_email: str | None = None
        if mode is InvitationMode.EMAIL:
            if not email:
                raise ValidationError("email", "Email invitations require an address")
            try:
                bound_email = Email(email).value
            except ValueError as exc:
                raise ValidationError("email", str(exc)) from exc

        issuer = await require_assignment(
            self._store,
            issuer_id,
            tenant_id,
            action="issue_invitation",
            roles=tuple(INVITABLE_ROLES),
        )
        if role not in INVITABLE_ROLES.get(issuer.role, frozenset()):
            raise UnauthorizedError(
                f"invite_{role.value}", identity_id=str(issuer_id), tenant_id=str(tenant_id)
            )
        if await self._store.get_tenant(tenant_id) is None:
            raise NotFoundError("Tenant", tenant_id)

        attempts = self._settings.max_generation_attempts
        for attempt in range(1, attempts + 1):
            now = self._clock()
            invitation = InvitationCode(
                code=self._generator.generate(),
                tenant_id=tenant_id,
                issued_by=issuer_id,
                expires_at=now + self._settings.ttl,
                mode=mode,
                role=role,
                email=bound_email,
                created_at=now,
            )
            try:
                await self._store.create_invitation(invitation)
            except CodeCollisionError:
                logger.info("code_collision", extra={"attempt": attempt, "purpose": "invitation"})
                continue
            logger.info(
                "invitation_issued",
                extra={
                    "tenant_id": str(tenant_id),
                    "code": mask_code(invitation.code),
                    "mode": mode.value,
                    "role": role.value,
                },
            )
            return IssuedInvitation(
                code=invitation.code, expires_at=invitation.expires_at, mode=mode, role=role
            )
        raise CodeSpaceExhaustedError(attempts, purpose="invitation", tenant_id=str(tenant_id))

    async def accept(
        self,
        code: str,
        identity_id: UUID,
        display_name: str | None = None,
        email: str | None = None,
    ) -> AcceptedInvitation:
        """Join the invitation's tenant with the invitation's role.

        Raises:
            InvalidOrExpiredCodeError: If the code is unknown or expired.
            AlreadyAcceptedError: If the code was already used.
            UnauthorizedError: If an email-bound invitation is redeemed by
                someone else.
            DuplicateIdentityError: If the identity already has a profile.
            ValidationError: If the supplied address or name is malformed.
        """
        normalized = self._generator.normalize(code)
        if not self._generator.is_well_formed(normalized):
            raise InvalidOrExpiredCodeError()
        invitation = await self._store.get_invitation(normalized)
        if invitation is None:
            raise InvalidOrExpiredCodeError()
        now = self._clock()
        invitation.ensure_acceptable(now)

        if invitation.email is not None:
            bound_identity = await self._gateway.find_by_address(invitation.email)
            if bound_identity != identity_id:
                raise UnauthorizedError(
                    "accept_invitation",
                    identity_id=str(identity_id),
                    tenant_id=str(invitation.tenant_id),
                )
        if await self._store.get_profile(identity_id) is not None:
            raise DuplicateIdentityError(email or invitation.email or "", source="profile")

        resolved_name, resolved_email = profile_details(display_name, invitation.email or email)
        state = _AcceptState(
            invitation=invitation,
            identity_id=identity_id,
            display_name=resolved_name,
            email=resolved_email,
            now=now,
        )
        await self._accept_saga.run(state)
        logger.info(
            "invitation_accepted",
            extra={
                "tenant_id": str(invitation.tenant_id),
                "identity_id": str(identity_id),
                "role": invitation.role.value,
            },
        )
        return AcceptedInvitation(
            tenant_id=invitation.tenant_id, role=invitation.role, identity_id=identity_id
        )

    async def list_invitations(self, tenant_id: UUID, requested_by: UUID) -> list[InvitationCode]:
        await require_assignment(
            self._store,
            requested_by,
            tenant_id,
            action="list_invitations",
            roles=tuple(INVITABLE_ROLES),
        )
        return await self._store.list_invitations(tenant_id)

    async def expire_stale(self, now: datetime | None = None) -> int:
        """Mark every pending invitation past its expiry as expired."""
        expired = await self._store.expire_invitations(now or self._clock())
        logger.info("invitations_expired", extra={"count": expired})
        return expired

    # -- Acceptance steps --

    async def _claim(self, state: _AcceptState) -> None:
        code = state.invitation.code
        if await self._store.accept_invitation(code, state.identity_id, state.now):
            return
        # Lost a race or expired in between; report whichever it was.
        current = await self._store.get_invitation(code)
        if current is not None and current.status is InvitationStatus.ACCEPTED:
            raise AlreadyAcceptedError(code)
        raise InvalidOrExpiredCodeError()

    async def _unclaim(self, state: _AcceptState) -> None:
        await self._store.revert_invitation_acceptance(state.invitation.code, state.identity_id)

    async def _create_profile(self, state: _AcceptState) -> None:
        await self._store.create_profile(
            ProfileRecord(
                identity_id=state.identity_id,
                tenant_id=state.invitation.tenant_id,
                role=state.invitation.role,
                display_name=state.display_name,
                email=state.email,
                created_at=state.now,
            )
        )

    async def _delete_profile(self, state: _AcceptState) -> None:
        await self._store.delete_profile(state.identity_id)

    async def _create_role_assignment(self, state: _AcceptState) -> None:
        await self._store.create_role_assignment(
            RoleAssignmentRecord(
                identity_id=state.identity_id,
                tenant_id=state.invitation.tenant_id,
                role=state.invitation.role,
                created_at=state.now,
            )
        )

    async def _delete_role_assignment(self, state: _AcceptState) -> None:
        await self._store.delete_role_assignment(state.identity_id, state.invitation.tenant_id)
