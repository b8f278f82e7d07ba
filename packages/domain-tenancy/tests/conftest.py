"""Shared fixtures for domain-tenancy tests."""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from uuid import UUID

import pytest

from rollcall.domain.tenancy.access_codes import AccessCodeLifecycle
from rollcall.domain.tenancy.enrollment import StudentEnrollment
from rollcall.domain.tenancy.infrastructure.memory_store import InMemoryTenantStore
from rollcall.domain.tenancy.invitations import InvitationIssuer
from rollcall.domain.tenancy.registration import RegistrationSaga
from rollcall.domain.tenancy.settings import (
    CodePolicySettings,
    InvitationSettings,
    RegistrationSettings,
)
from rollcall.infra.auth.code_generator import ShareableCodeGenerator
from rollcall.infra.auth.memory_gateway import InMemoryIdentityGateway

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


class Clock:
    """Settable clock; call it for the current time."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class ScriptedCodeGenerator(ShareableCodeGenerator):
    """Hands out scripted codes first, then random ones."""

    def __init__(self, codes: Iterable[str] = ()) -> None:
        super().__init__()
        self.queue: deque[str] = deque(codes)
        self.generated: list[str] = []

    def script(self, *codes: str) -> None:
        self.queue.extend(codes)

    def generate(self) -> str:
        code = self.queue.popleft() if self.queue else super().generate()
        self.generated.append(code)
        return code


class FakeIdentityGateway(InMemoryIdentityGateway):
    """In-memory identity provider that can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_on: dict[str, BaseException] = {}
        self.calls: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    async def create_identity(self, email: str, secret: str, metadata: dict[str, Any]) -> UUID:
        self._maybe_fail("create_identity")
        return await super().create_identity(email, secret, metadata)

    async def find_by_address(self, email: str) -> UUID | None:
        self._maybe_fail("find_by_address")
        return await super().find_by_address(email)

    async def delete_identity(self, identity_id: UUID) -> None:
        self._maybe_fail("delete_identity")
        await super().delete_identity(identity_id)

    async def send_verification_link(self, identity_id: UUID, redirect_to: str) -> None:
        self._maybe_fail("send_verification_link")
        await super().send_verification_link(identity_id, redirect_to)


@pytest.fixture()
def break_method(monkeypatch: pytest.MonkeyPatch) -> Callable[[object, str, BaseException], None]:
    """Returns a helper making ``target.name`` raise ``error`` when awaited."""

    def breaker(target: object, name: str, error: BaseException) -> None:
        async def failing(*args: Any, **kwargs: Any) -> Any:
            raise error

        monkeypatch.setattr(target, name, failing)

    return breaker


@pytest.fixture()
def clock() -> Clock:
    return Clock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture()
def store() -> InMemoryTenantStore:
    return InMemoryTenantStore()


@pytest.fixture()
def gateway() -> FakeIdentityGateway:
    return FakeIdentityGateway()


@pytest.fixture()
def generator() -> ScriptedCodeGenerator:
    return ScriptedCodeGenerator()


@pytest.fixture()
def code_settings() -> CodePolicySettings:
    return CodePolicySettings()


@pytest.fixture()
def lifecycle(
    store: InMemoryTenantStore,
    generator: ScriptedCodeGenerator,
    code_settings: CodePolicySettings,
    clock: Clock,
) -> AccessCodeLifecycle:
    return AccessCodeLifecycle(store, generator, code_settings, clock=clock)


@pytest.fixture()
def saga(
    store: InMemoryTenantStore,
    gateway: FakeIdentityGateway,
    lifecycle: AccessCodeLifecycle,
    clock: Clock,
) -> RegistrationSaga:
    return RegistrationSaga(
        store,
        gateway,
        lifecycle,
        settings=RegistrationSettings(step_timeout_seconds=1.0),
        clock=clock,
    )


@pytest.fixture()
def issuer(
    store: InMemoryTenantStore,
    generator: ScriptedCodeGenerator,
    gateway: FakeIdentityGateway,
    clock: Clock,
) -> InvitationIssuer:
    return InvitationIssuer(store, generator, gateway, InvitationSettings(), clock=clock)


@pytest.fixture()
def enrollment(
    store: InMemoryTenantStore, lifecycle: AccessCodeLifecycle, clock: Clock
) -> StudentEnrollment:
    return StudentEnrollment(store, lifecycle, clock=clock)
