"""Builds the registry's domain services from settings.

One :class:`RegistryServices` bundle is created per process (API server or
worker) and shared by every request or task it handles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rollcall.app.registry.settings import RegistrySettings, get_registry_settings
from rollcall.app.registry.tasks import TaskiqVerificationNotifier, register_tasks
from rollcall.domain.identity import MembershipCache, MembershipCacheSettings, MembershipResolver
from rollcall.domain.tenancy import (
    AccessCodeLifecycle,
    CodePolicySettings,
    GatewayVerificationNotifier,
    InvitationIssuer,
    InvitationSettings,
    RegistrationSaga,
    RegistrationSettings,
    StudentEnrollment,
    utcnow,
)
from rollcall.domain.tenancy.infrastructure import InMemoryTenantStore, SqlTenantStore
from rollcall.infra.auth import (
    HttpIdentityGateway,
    InMemoryIdentityGateway,
    ShareableCodeGenerator,
    get_identity_settings,
)
from rollcall.infra.observability import saga_step_span
from rollcall.infra.persistence import get_database_manager
from rollcall.infra.taskiq import get_broker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from rollcall.domain.tenancy import TenantStorePort, VerificationNotifier
    from rollcall.foundation.application import StepInstrument
    from rollcall.foundation.domain.ports import CodeGeneratorPort, IdentityGatewayPort

logger = logging.getLogger(__name__)


@dataclass
class RegistryServices:
    """Everything the HTTP routes and background tasks call into."""

    store: TenantStorePort
    gateway: IdentityGatewayPort
    codes: AccessCodeLifecycle
    registration: RegistrationSaga
    invitations: InvitationIssuer
    enrollment: StudentEnrollment
    memberships: MembershipResolver
    verification_redirect_url: str
    settings: RegistrySettings
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        """Release clients this bundle created, newest first."""
        while self.closers:
            closer = self.closers.pop()
            try:
                await closer()
            except Exception:
                logger.warning("registry_service_close_failed", exc_info=True)


def _build_store(settings: RegistrySettings) -> TenantStorePort:
    if settings.store_backend == "memory":
        return InMemoryTenantStore()
    return SqlTenantStore(get_database_manager().session_factory)


def build_services(
    settings: RegistrySettings | None = None,
    *,
    store: TenantStorePort | None = None,
    gateway: IdentityGatewayPort | None = None,
    generator: CodeGeneratorPort | None = None,
    notifier: VerificationNotifier | None = None,
    redis_client: Any | None = None,
    instrument: StepInstrument | None = saga_step_span,
    clock: Callable[[], datetime] = utcnow,
) -> RegistryServices:
    """Assemble the registry services.

    Explicit collaborators win over the adapters ``settings`` would pick,
    which is how tests inject fakes.

    Args:
        settings: Adapter selection; read from the environment when omitted.
        store: Tenant store override.
        gateway: Identity provider override.
        generator: Code generator override.
        notifier: Verification notifier override.
        redis_client: Async Redis client for the shared membership cache layer.
        instrument: Saga step wrapper; tracing spans by default.
        clock: Returns the current time.
    """
    settings = settings or get_registry_settings()
    identity_settings = get_identity_settings()
    code_policy = CodePolicySettings()
    closers: list[Callable[[], Awaitable[None]]] = []

    store = store or _build_store(settings)
    if gateway is None:
        if settings.identity_backend == "memory":
            gateway = InMemoryIdentityGateway()
        else:
            http_gateway = HttpIdentityGateway.from_settings(identity_settings)
            closers.append(http_gateway.aclose)
            gateway = http_gateway
    generator = generator or ShareableCodeGenerator(length=code_policy.length)

    if notifier is None and settings.notifier == "gateway":
        notifier = GatewayVerificationNotifier(
            gateway, identity_settings.verification_redirect_url
        )
    elif notifier is None and settings.uses_taskiq:
        tasks = register_tasks(get_broker())
        notifier = TaskiqVerificationNotifier(tasks.send_verification_link)

    codes = AccessCodeLifecycle(store, generator, code_policy, clock=clock)
    cache = MembershipCache.from_settings(MembershipCacheSettings(), redis_client)
    services = RegistryServices(
        store=store,
        gateway=gateway,
        codes=codes,
        registration=RegistrationSaga(
            store,
            gateway,
            codes,
            notifier,
            RegistrationSettings(),
            instrument=instrument,
            clock=clock,
        ),
        invitations=InvitationIssuer(
            store,
            generator,
            gateway,
            InvitationSettings(),
            instrument=instrument,
            clock=clock,
        ),
        enrollment=StudentEnrollment(store, codes, cache, instrument=instrument, clock=clock),
        memberships=MembershipResolver(store, cache),
        verification_redirect_url=identity_settings.verification_redirect_url,
        settings=settings,
        closers=closers,
    )
    logger.info(
        "registry_services_built",
        extra={
            "store_backend": type(store).__name__,
            "identity_backend": type(gateway).__name__,
            "notifier": type(notifier).__name__ if notifier is not None else None,
        },
    )
    return services
