"""Tenant registration: provision a school and its first admin identity.

Registration creates records in two systems that share no transaction: the
tenant store and the external identity provider. It runs as a saga:

    check_identity          (advisory, nothing to undo)
    reserve_code            undo: release the reservation
    create_tenant           undo: delete the tenant and its codes
    create_identity         undo: delete the identity
    create_profile_record   undo: delete the profile
    create_role_assignment  undo: delete the assignment

A failure at any step undoes everything before it, newest first, and the
original error reaches the caller. Partial success is never reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol
from uuid import UUID, uuid4

from rollcall.domain.identity.identity_check import ensure_identity_available
from rollcall.domain.identity.records import ProfileRecord, RoleAssignmentRecord
from rollcall.domain.tenancy.access_codes import mask_code
from rollcall.domain.tenancy.settings import RegistrationSettings
from rollcall.domain.tenancy.tenant import Tenant, utcnow
from rollcall.foundation.application.saga import Saga, SagaReport, SagaStep
from rollcall.foundation.domain.exceptions import ValidationError
from rollcall.foundation.domain.roles import Role
from rollcall.foundation.domain.tenant_value_objects import TenantName
from rollcall.foundation.domain.user_value_objects import DisplayName, Email

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from rollcall.domain.tenancy.access_codes import AccessCodeLifecycle
    from rollcall.domain.tenancy.ports import TenantStorePort
    from rollcall.foundation.application.saga import StepInstrument
    from rollcall.foundation.domain.ports import IdentityGatewayPort

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Tenant and admin account successfully created. "
    "Please check your email to verify your account before logging in."
)

MIN_SECRET_LENGTH = 8


@dataclass(frozen=True, slots=True)
class RegistrationCommand:
    """Validated registration input."""

    tenant_name: TenantName
    admin_email: Email
    admin_secret: str = field(repr=False)
    admin_display_name: DisplayName

    @classmethod
    def from_raw(
        cls,
        tenant_name: str,
        admin_email: str,
        admin_secret: str,
        admin_display_name: str | None = None,
    ) -> RegistrationCommand:
        """Build a command from untrusted strings.

        Raises:
            ValidationError: If any field is invalid.
        """
        try:
            name = TenantName(tenant_name)
        except ValueError as exc:
            raise ValidationError("tenant_name", str(exc)) from exc
        try:
            email = Email(admin_email)
        except ValueError as exc:
            raise ValidationError("admin_email", str(exc)) from exc
        if len(admin_secret) < MIN_SECRET_LENGTH:
            raise ValidationError(
                "admin_secret", f"Must be at least {MIN_SECRET_LENGTH} characters"
            )
        try:
            display_name = (
                DisplayName(admin_display_name)
                if admin_display_name and admin_display_name.strip()
                else DisplayName.from_email(email)
            )
        except ValueError as exc:
            raise ValidationError("admin_display_name", str(exc)) from exc
        return cls(name, email, admin_secret, display_name)


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    tenant_id: UUID
    code: str
    identity_id: UUID
    message: str = SUCCESS_MESSAGE


@dataclass
class RegistrationState:
    """What the saga has created so far. Compensations read from here."""

    command: RegistrationCommand
    tenant_id: UUID = field(default_factory=uuid4)
    code: str | None = None
    identity_id: UUID | None = None


class VerificationNotifier(Protocol):
    """Sends (or schedules) the verification link for a new identity."""

    async def notify(self, identity_id: UUID, email: str) -> None: ...


class GatewayVerificationNotifier:
    """Asks the identity provider to send the link, in-process."""

    def __init__(self, gateway: IdentityGatewayPort, redirect_to: str) -> None:
        self._gateway = gateway
        self._redirect_to = redirect_to

    async def notify(self, identity_id: UUID, email: str) -> None:
        await self._gateway.send_verification_link(identity_id, self._redirect_to)
        logger.info("verification_link_sent", extra={"identity_id": str(identity_id)})


class RegistrationSaga:
    """Registers a tenant together with its admin identity.

    Args:
        store: Tenant store.
        gateway: Identity provider.
        codes: Join-code lifecycle used to reserve the first code.
        notifier: Verification link sender; skipped when None.
        settings: Step timeout settings.
        instrument: Optional wrapper for every saga step (tracing).
        clock: Returns the current time.
    """

    def __init__(
        self,
        store: TenantStorePort,
        gateway: IdentityGatewayPort,
        codes: AccessCodeLifecycle,
        notifier: VerificationNotifier | None = None,
        settings: RegistrationSettings | None = None,
        *,
        instrument: StepInstrument | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._codes = codes
        self._notifier = notifier
        self._clock = clock
        settings = settings or RegistrationSettings()
        self._saga: Saga[RegistrationState] = Saga(
            "registration",
            [
                SagaStep("check_identity", self._check_identity),
                SagaStep("reserve_code", self._reserve_code, self._release_code),
                SagaStep(
                    "create_tenant",
                    self._create_tenant,
                    self._delete_tenant,
                    compensate_on_failure=True,
                ),
                SagaStep("create_identity", self._create_identity, self._delete_identity),
                SagaStep(
                    "create_profile_record",
                    self._create_profile,
                    self._delete_profile,
                    compensate_on_failure=True,
                ),
                SagaStep(
                    "create_role_assignment_record",
                    self._create_role_assignment,
                    self._delete_role_assignment,
                    compensate_on_failure=True,
                ),
            ],
            step_timeout=settings.step_timeout_seconds,
            instrument=instrument,
        )

    @property
    def step_names(self) -> tuple[str, ...]:
        return self._saga.step_names

    async def register(self, command: RegistrationCommand) -> RegistrationResult:
        """Run the saga and, on success, send the verification link.

        Raises:
            DuplicateIdentityError: If the address is already registered.
            ServiceUnavailableError: If a collaborator failed or timed out.
            CodeSpaceExhaustedError: If no join code could be reserved.
        """
        state = RegistrationState(command=command)
        report = SagaReport(saga="registration")
        logger.info("registration_started", extra={"tenant_name": command.tenant_name.value})
        try:
            await self._saga.run(state, report)
        except Exception as exc:
            logger.warning(
                "registration_failed",
                extra={
                    "failed_step": report.failed_step,
                    "error_type": type(exc).__name__,
                    "compensated": report.compensated,
                },
            )
            if not report.fully_compensated:
                logger.error(
                    "registration_compensation_failed",
                    extra={"steps": [f.step for f in report.compensation_failures]},
                )
            raise

        assert state.code is not None and state.identity_id is not None
        logger.info(
            "registration_succeeded",
            extra={
                "tenant_id": str(state.tenant_id),
                "identity_id": str(state.identity_id),
                "code": mask_code(state.code),
            },
        )
        await self._notify(state.identity_id, command.admin_email.value)
        return RegistrationResult(
            tenant_id=state.tenant_id, code=state.code, identity_id=state.identity_id
        )

    async def _notify(self, identity_id: UUID, email: str) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(identity_id, email)
        except Exception:
            # Registration already succeeded; the user can ask for a new link.
            logger.exception(
                "verification_dispatch_failed", extra={"identity_id": str(identity_id)}
            )

    # -- Steps --

    async def _check_identity(self, state: RegistrationState) -> None:
        await ensure_identity_available(self._gateway, self._store, state.command.admin_email)

    async def _reserve_code(self, state: RegistrationState) -> None:
        issued = await self._codes.issue_initial_code(state.command.tenant_name.value)
        state.code = issued.code

    async def _release_code(self, state: RegistrationState) -> None:
        if state.code is not None:
            await self._codes.release_reservation(state.code)

    async def _create_tenant(self, state: RegistrationState) -> None:
        assert state.code is not None
        now = self._clock()
        tenant = Tenant(
            id=state.tenant_id,
            name=state.command.tenant_name.value,
            active_code=state.code,
            created_at=now,
            updated_at=now,
        )
        access_code = self._codes.initial_access_code(state.code, state.tenant_id, now)
        await self._store.create_tenant(tenant, access_code)

    async def _delete_tenant(self, state: RegistrationState) -> None:
        await self._store.delete_tenant(state.tenant_id)

    async def _create_identity(self, state: RegistrationState) -> None:
        command = state.command
        metadata = {
            "full_name": command.admin_display_name.value,
            "role": Role.TENANT_ADMIN.value,
            "tenant_id": str(state.tenant_id),
            "tenant_code": state.code,
            "tenant_name": command.tenant_name.value,
        }
        state.identity_id = await self._gateway.create_identity(
            command.admin_email.value, command.admin_secret, metadata
        )

    async def _delete_identity(self, state: RegistrationState) -> None:
        # Only an identity this run created is ever deleted.
        if state.identity_id is not None:
            await self._gateway.delete_identity(state.identity_id)

    async def _create_profile(self, state: RegistrationState) -> None:
        assert state.identity_id is not None
        command = state.command
        await self._store.create_profile(
            ProfileRecord(
                identity_id=state.identity_id,
                tenant_id=state.tenant_id,
                role=Role.TENANT_ADMIN,
                display_name=command.admin_display_name.value,
                email=command.admin_email.value,
                created_at=self._clock(),
            )
        )

    async def _delete_profile(self, state: RegistrationState) -> None:
        if state.identity_id is not None:
            await self._store.delete_profile(state.identity_id)

    async def _create_role_assignment(self, state: RegistrationState) -> None:
        assert state.identity_id is not None
        await self._store.create_role_assignment(
            RoleAssignmentRecord(
                identity_id=state.identity_id,
                tenant_id=state.tenant_id,
                role=Role.TENANT_ADMIN,
                supervisor=True,
                created_at=self._clock(),
            )
        )

    async def _delete_role_assignment(self, state: RegistrationState) -> None:
        if state.identity_id is not None:
            await self._store.delete_role_assignment(state.identity_id, state.tenant_id)
