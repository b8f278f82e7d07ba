"""Lifespan wiring: build the services, create tables, register health checks."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from rollcall.app.registry.services import RegistryServices, build_services
from rollcall.app.registry.tasks import bind_services
from rollcall.domain.identity import MembershipCacheSettings
from rollcall.domain.tenancy.infrastructure import create_all
from rollcall.foundation.application import LIFESPAN_PRIORITY_SERVICES, LifespanContribution
from rollcall.infra.fastapi import register_health_check
from rollcall.infra.persistence import get_database_manager, get_redis_factory
from rollcall.infra.taskiq import get_broker

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from rollcall.app.registry.settings import RegistrySettings

logger = logging.getLogger(__name__)


def _register_redis_check(app: FastAPI, client: Any) -> None:
    async def redis() -> None:
        await client.ping()

    register_health_check(app, "redis", redis)


async def _membership_redis_client() -> Any | None:
    if not MembershipCacheSettings().use_redis:
        return None
    return await get_redis_factory().get_client()


def services_lifespan(
    settings: RegistrySettings, services: RegistryServices | None = None
) -> LifespanContribution:
    """Lifespan contribution that owns the registry services.

    Args:
        settings: Adapter selection.
        services: Prebuilt services. The caller keeps ownership of these;
            services built here are closed on shutdown.
    """

    @asynccontextmanager
    async def _registry_lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = services is None
        redis_client = await _membership_redis_client() if owned else None
        current = services or build_services(settings, redis_client=redis_client)

        if current.settings.uses_database:
            manager = get_database_manager()
            if manager.settings.create_tables:
                await create_all(manager.engine)
                logger.info("database_tables_created")
            register_health_check(app, "database", manager.ping)
        if redis_client is not None:
            _register_redis_check(app, redis_client)
        if current.settings.uses_taskiq:
            bind_services(get_broker(), current)

        app.state.registry_services = current
        logger.info("registry_services_ready", extra={"owned": owned})
        try:
            yield
        finally:
            app.state.registry_services = None
            if owned:
                await current.aclose()
            logger.info("registry_services_stopped")

    return LifespanContribution(hook=_registry_lifespan, priority=LIFESPAN_PRIORITY_SERVICES)
