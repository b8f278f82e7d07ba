"""Join-code lifecycle: reservation, rotation, verification and history.

Each tenant has exactly one active join code. Rotation goes through a
single conditional write on the store so a reader never sees a tenant with
zero or two active codes. Collisions are retried with a fresh candidate and
optimistic conflicts with a fresh read, each a bounded number of times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rollcall.domain.identity.authorization import require_assignment
from rollcall.domain.tenancy.settings import CodePolicySettings
from rollcall.domain.tenancy.tenant import AccessCode, CodeReservation, utcnow
from rollcall.foundation.domain.exceptions import (
    CodeCollisionError,
    CodeSpaceExhaustedError,
    ConcurrentModificationError,
    NotFoundError,
    ResourceLimitExceededError,
)
from rollcall.foundation.domain.roles import Role

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from rollcall.domain.tenancy.ports import TenantStorePort
    from rollcall.domain.tenancy.tenant import Tenant
    from rollcall.foundation.domain.ports import CodeGeneratorPort

logger = logging.getLogger(__name__)


def mask_code(code: str) -> str:
    """Loggable form of a join code: first two characters, rest starred."""
    return code[:2] + "*" * max(len(code) - 2, 0)


@dataclass(frozen=True, slots=True)
class IssuedCode:
    """A freshly issued join code."""

    code: str
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class CodeVerification:
    """Outcome of checking a join code.

    ``tenant_id`` and ``tenant_name`` are only set when ``valid`` is True.
    """

    valid: bool
    tenant_id: UUID | None = None
    tenant_name: str | None = None


_INVALID = CodeVerification(valid=False)


class AccessCodeLifecycle:
    """Issues, rotates and verifies tenant join codes.

    Args:
        store: Tenant store.
        generator: Source of candidate codes.
        settings: Code policy; read from the environment when omitted.
        clock: Returns the current time (timezone-aware).
    """

    def __init__(
        self,
        store: TenantStorePort,
        generator: CodeGeneratorPort,
        settings: CodePolicySettings | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._generator = generator
        self._settings = settings or CodePolicySettings()
        self._clock = clock

    async def issue_initial_code(self, tenant_name: str) -> IssuedCode:
        """Reserve a code for a tenant that does not exist yet.

        Raises:
            CodeSpaceExhaustedError: If every candidate collided.
            StoreUnavailableError: If the store cannot be reached.
        """
        attempts = self._settings.max_generation_attempts
        for attempt in range(1, attempts + 1):
            candidate = self._generator.generate()
            reservation = CodeReservation(
                code=candidate, tenant_name=tenant_name, reserved_at=self._clock()
            )
            try:
                await self._store.reserve_code(reservation)
            except CodeCollisionError:
                logger.info(
                    "code_collision",
                    extra={"attempt": attempt, "purpose": "initial"},
                )
                continue
            logger.info("code_reserved", extra={"code": mask_code(candidate)})
            return IssuedCode(code=candidate)
        raise CodeSpaceExhaustedError(attempts, purpose="initial")

    def initial_access_code(self, code: str, tenant_id: UUID, now: datetime) -> AccessCode:
        """The active AccessCode a new tenant is created with."""
        ttl = self._settings.initial_ttl
        return AccessCode(
            code=code,
            tenant_id=tenant_id,
            generated_at=now,
            expires_at=now + ttl if ttl is not None else None,
        )

    async def release_reservation(self, code: str) -> None:
        await self._store.release_reservation(code)
        logger.info("code_reservation_released", extra={"code": mask_code(code)})

    async def regenerate(self, tenant_id: UUID, requested_by: UUID | None = None) -> IssuedCode:
        """Replace the tenant's active code with a new one.

        Args:
            tenant_id: Tenant whose code rotates.
            requested_by: Acting identity. When given it must hold an active
                tenant_admin or supervisor assignment for the tenant.

        Returns:
            The new code and its expiry.

        Raises:
            UnauthorizedError: If ``requested_by`` may not manage codes.
            NotFoundError: If the tenant does not exist.
            ResourceLimitExceededError: If the regeneration rate limit is hit.
            CodeSpaceExhaustedError: If every candidate collided.
            ConcurrentModificationError: If other rotations kept winning.
        """
        if requested_by is not None:
            await require_assignment(
                self._store,
                requested_by,
                tenant_id,
                action="regenerate_code",
                roles=(Role.TENANT_ADMIN,),
                allow_supervisor=True,
            )

        retries = self._settings.max_concurrency_retries
        for attempt in range(1, retries + 1):
            tenant = await self._store.get_tenant(tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant", tenant_id)
            await self._enforce_rate_limit(tenant_id)
            try:
                issued = await self._rotate(tenant, requested_by)
            except ConcurrentModificationError:
                logger.info(
                    "code_rotation_conflict",
                    extra={"tenant_id": str(tenant_id), "attempt": attempt},
                )
                continue
            logger.info(
                "code_regenerated",
                extra={
                    "tenant_id": str(tenant_id),
                    "code": mask_code(issued.code),
                    "previous_code": mask_code(tenant.active_code),
                },
            )
            return issued
        raise ConcurrentModificationError("Tenant", tenant_id, attempts=retries)

    async def _enforce_rate_limit(self, tenant_id: UUID) -> None:
        limit = self._settings.max_regenerations_per_window
        since = self._clock() - self._settings.rate_limit_window
        current = await self._store.count_regenerations_since(tenant_id, since)
        if current >= limit:
            raise ResourceLimitExceededError(
                "code regenerations", limit, current, tenant_id=str(tenant_id)
            )

    async def _rotate(self, tenant: Tenant, requested_by: UUID | None) -> IssuedCode:
        attempts = self._settings.max_generation_attempts
        for attempt in range(1, attempts + 1):
            now = self._clock()
            new_code = AccessCode(
                code=self._generator.generate(),
                tenant_id=tenant.id,
                generated_at=now,
                expires_at=now + self._settings.regenerated_ttl,
                generated_by=requested_by,
            )
            try:
                await self._store.rotate_access_code(tenant.id, tenant.version, new_code, now)
            except CodeCollisionError:
                logger.info(
                    "code_collision",
                    extra={"attempt": attempt, "purpose": "regenerate"},
                )
                continue
            return IssuedCode(code=new_code.code, expires_at=new_code.expires_at)
        raise CodeSpaceExhaustedError(attempts, purpose="regenerate", tenant_id=str(tenant.id))

    async def verify(self, code: str) -> CodeVerification:
        """Check whether ``code`` currently admits anyone to a tenant.

        Malformed input is rejected without touching the store.
        """
        normalized = self._generator.normalize(code)
        if not self._generator.is_well_formed(normalized):
            return _INVALID

        row = await self._store.get_access_code(normalized)
        if row is None or not row.is_usable(self._clock()):
            return _INVALID

        tenant = await self._store.get_tenant(row.tenant_id)
        if tenant is None:
            return _INVALID
        return CodeVerification(valid=True, tenant_id=tenant.id, tenant_name=tenant.name)

    async def list_codes(
        self, tenant_id: UUID, requested_by: UUID | None = None
    ) -> list[AccessCode]:
        """Code history for a tenant, newest first."""
        if requested_by is not None:
            await require_assignment(
                self._store,
                requested_by,
                tenant_id,
                action="list_codes",
                roles=(Role.TENANT_ADMIN,),
                allow_supervisor=True,
            )
        return await self._store.list_access_codes(tenant_id)
