"""Unit tests for the registration saga."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import pytest

from rollcall.domain.identity.records import ProfileRecord
from rollcall.domain.tenancy.registration import (
    SUCCESS_MESSAGE,
    GatewayVerificationNotifier,
    RegistrationCommand,
    RegistrationSaga,
)
from rollcall.domain.tenancy.settings import RegistrationSettings
from rollcall.foundation.domain.exceptions import (
    DuplicateIdentityError,
    IdentityProviderUnavailableError,
    StepTimeoutError,
    StoreUnavailableError,
    ValidationError,
)
from rollcall.foundation.domain.roles import Role

if TYPE_CHECKING:
    from collections.abc import Callable

    from conftest import Clock, FakeIdentityGateway, ScriptedCodeGenerator

    from rollcall.domain.tenancy.access_codes import AccessCodeLifecycle
    from rollcall.domain.tenancy.infrastructure.memory_store import InMemoryTenantStore


def _command(
    tenant_name: str = "Oak Elementary",
    email: str = "principal@oak.edu",
    display_name: str | None = "Pat Principal",
) -> RegistrationCommand:
    return RegistrationCommand.from_raw(tenant_name, email, "correct-horse", display_name)


def _assert_nothing_left(store: InMemoryTenantStore, gateway: FakeIdentityGateway) -> None:
    assert store.tenants == {}
    assert store.access_codes == {}
    assert store.reservations == {}
    assert store.profiles == {}
    assert store.role_assignments == {}
    assert gateway.identities == {}


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[UUID, str]] = []

    async def notify(self, identity_id: UUID, email: str) -> None:
        self.sent.append((identity_id, email))


@pytest.mark.unit
class TestRegistrationCommand:
    def test_normalizes_input(self) -> None:
        command = RegistrationCommand.from_raw("  Oak  ", " Admin@Oak.EDU ", "12345678")
        assert command.tenant_name.value == "Oak"
        assert command.admin_email.value == "admin@oak.edu"
        assert command.admin_display_name.value == "admin"

    def test_secret_not_in_repr(self) -> None:
        assert "correct-horse" not in repr(_command())

    @pytest.mark.parametrize(
        ("tenant_name", "email", "secret", "field"),
        [
            ("   ", "a@oak.edu", "12345678", "tenant_name"),
            ("Oak", "not-an-email", "12345678", "admin_email"),
            ("Oak", "a@oak.edu", "short", "admin_secret"),
        ],
    )
    def test_rejects_invalid_fields(
        self, tenant_name: str, email: str, secret: str, field: str
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            RegistrationCommand.from_raw(tenant_name, email, secret)
        assert exc_info.value.field == field


@pytest.mark.unit
class TestRegistrationSuccess:
    @pytest.mark.asyncio
    async def test_creates_tenant_code_identity_profile_and_assignment(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        generator: ScriptedCodeGenerator,
    ) -> None:
        generator.script("ABCD2345")

        result = await saga.register(_command())

        assert result.code == "ABCD2345"
        assert result.message == SUCCESS_MESSAGE
        tenant = store.tenants[result.tenant_id]
        assert tenant.name == "Oak Elementary"
        assert tenant.active_code == "ABCD2345"
        assert store.access_codes["ABCD2345"].tenant_id == result.tenant_id
        assert store.access_codes["ABCD2345"].expires_at is None
        assert store.reservations["ABCD2345"].tenant_id == result.tenant_id

        assert gateway.identities[result.identity_id] == "principal@oak.edu"
        assert gateway.metadata[result.identity_id] == {
            "full_name": "Pat Principal",
            "role": "tenant_admin",
            "tenant_id": str(result.tenant_id),
            "tenant_code": "ABCD2345",
            "tenant_name": "Oak Elementary",
        }

        profile = store.profiles[result.identity_id]
        assert profile.tenant_id == result.tenant_id
        assert profile.role is Role.TENANT_ADMIN
        assert profile.email == "principal@oak.edu"
        assignment = store.role_assignments[(result.identity_id, result.tenant_id)]
        assert assignment.role is Role.TENANT_ADMIN
        assert assignment.supervisor
        assert assignment.can_manage_codes

    @pytest.mark.asyncio
    async def test_registration_code_verifies(
        self, saga: RegistrationSaga, lifecycle: AccessCodeLifecycle
    ) -> None:
        result = await saga.register(_command())
        verification = await lifecycle.verify(result.code)
        assert verification.valid
        assert verification.tenant_id == result.tenant_id
        assert verification.tenant_name == "Oak Elementary"

    def test_step_order(self, saga: RegistrationSaga) -> None:
        assert saga.step_names == (
            "check_identity",
            "reserve_code",
            "create_tenant",
            "create_identity",
            "create_profile_record",
            "create_role_assignment_record",
        )

    @pytest.mark.asyncio
    async def test_sends_verification_after_success(
        self,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        lifecycle: AccessCodeLifecycle,
    ) -> None:
        notifier = RecordingNotifier()
        saga = RegistrationSaga(store, gateway, lifecycle, notifier)
        result = await saga.register(_command())
        assert notifier.sent == [(result.identity_id, "principal@oak.edu")]

    @pytest.mark.asyncio
    async def test_verification_failure_does_not_fail_registration(
        self,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        lifecycle: AccessCodeLifecycle,
    ) -> None:
        gateway.fail_on["send_verification_link"] = IdentityProviderUnavailableError("resend")
        notifier = GatewayVerificationNotifier(gateway, "https://app.example/welcome")
        saga = RegistrationSaga(store, gateway, lifecycle, notifier)

        result = await saga.register(_command())

        assert result.tenant_id in store.tenants
        assert "send_verification_link" in gateway.calls
        assert gateway.verification_links == []

    @pytest.mark.asyncio
    async def test_gateway_notifier_sends_link(
        self,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        lifecycle: AccessCodeLifecycle,
    ) -> None:
        notifier = GatewayVerificationNotifier(gateway, "https://app.example/welcome")
        result = await RegistrationSaga(store, gateway, lifecycle, notifier).register(_command())
        assert gateway.verification_links == [(result.identity_id, "https://app.example/welcome")]


@pytest.mark.unit
class TestDuplicateIdentity:
    @pytest.mark.asyncio
    async def test_second_registration_with_same_email_is_rejected(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
    ) -> None:
        first = await saga.register(_command())

        with pytest.raises(DuplicateIdentityError):
            await saga.register(_command(tenant_name="Maple High", email="PRINCIPAL@oak.edu"))

        assert list(store.tenants) == [first.tenant_id]
        assert list(store.reservations) == [first.code]
        assert list(gateway.identities) == [first.identity_id]

    @pytest.mark.asyncio
    async def test_existing_profile_blocks_registration(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
    ) -> None:
        await store.create_profile(
            ProfileRecord(uuid4(), uuid4(), Role.STUDENT, "Sam", "principal@oak.edu")
        )
        with pytest.raises(DuplicateIdentityError) as exc_info:
            await saga.register(_command())
        assert exc_info.value.context["source"] == "profile"
        assert store.tenants == {}
        assert "create_identity" not in gateway.calls

    @pytest.mark.asyncio
    async def test_provider_rejects_after_advisory_check_passed(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        existing = await gateway.create_identity("principal@oak.edu", "x" * 8, {})

        async def not_found_yet(email: str) -> None:
            return None

        # A concurrent registration created the identity after the check.
        monkeypatch.setattr(gateway, "find_by_address", not_found_yet)

        with pytest.raises(DuplicateIdentityError):
            await saga.register(_command())

        assert gateway.identities == {existing: "principal@oak.edu"}
        assert "delete_identity" not in gateway.calls
        assert store.tenants == {}
        assert store.reservations == {}


@pytest.mark.unit
class TestCompensation:
    @pytest.mark.asyncio
    async def test_failure_at_last_step_undoes_everything(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        break_method: Callable[[object, str, BaseException], None],
    ) -> None:
        error = StoreUnavailableError("create_role_assignment")
        break_method(store, "create_role_assignment", error)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await saga.register(_command())

        assert exc_info.value is error
        _assert_nothing_left(store, gateway)
        assert gateway.calls.count("delete_identity") == 1

    @pytest.mark.asyncio
    async def test_failure_at_profile_undoes_identity_and_tenant(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        break_method: Callable[[object, str, BaseException], None],
    ) -> None:
        break_method(store, "create_profile", StoreUnavailableError("create_profile"))
        with pytest.raises(StoreUnavailableError):
            await saga.register(_command())
        _assert_nothing_left(store, gateway)

    @pytest.mark.asyncio
    async def test_identity_provider_outage_undoes_tenant(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
    ) -> None:
        gateway.fail_on["create_identity"] = IdentityProviderUnavailableError("create_identity")
        with pytest.raises(IdentityProviderUnavailableError):
            await saga.register(_command())
        _assert_nothing_left(store, gateway)
        assert "delete_identity" not in gateway.calls

    @pytest.mark.asyncio
    async def test_advisory_check_outage_propagates(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
    ) -> None:
        gateway.fail_on["find_by_address"] = IdentityProviderUnavailableError("find_by_address")
        with pytest.raises(IdentityProviderUnavailableError):
            await saga.register(_command())
        _assert_nothing_left(store, gateway)

    @pytest.mark.asyncio
    async def test_timed_out_step_counts_as_failed(
        self,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        lifecycle: AccessCodeLifecycle,
        clock: Clock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def hang(email: str, secret: str, metadata: dict[str, Any]) -> UUID:
            await asyncio.sleep(5)
            return uuid4()

        monkeypatch.setattr(gateway, "create_identity", hang)
        saga = RegistrationSaga(
            store,
            gateway,
            lifecycle,
            settings=RegistrationSettings(step_timeout_seconds=0.05),
            clock=clock,
        )

        with pytest.raises(StepTimeoutError) as exc_info:
            await saga.register(_command())

        assert exc_info.value.step == "create_identity"
        assert store.tenants == {}
        assert store.reservations == {}

    @pytest.mark.asyncio
    async def test_failed_compensation_keeps_original_error(
        self,
        saga: RegistrationSaga,
        store: InMemoryTenantStore,
        gateway: FakeIdentityGateway,
        break_method: Callable[[object, str, BaseException], None],
    ) -> None:
        break_method(store, "create_profile", StoreUnavailableError("create_profile"))
        gateway.fail_on["delete_identity"] = IdentityProviderUnavailableError("delete_identity")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await saga.register(_command())

        notes = getattr(exc_info.value, "__notes__", [])
        assert any("create_identity" in note for note in notes)
        # Later compensations still ran.
        assert store.tenants == {}
        assert store.reservations == {}
