"""Startup check and shutdown cleanup for the database and Redis.

Runs at priority 75: after logging and tracing are configured, before the
task broker and the registry services that use the engine.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from rollcall.foundation.application import (
    LIFESPAN_PRIORITY_PERSISTENCE,
    LifespanContribution,
)
from rollcall.infra.persistence.database import get_database_manager
from rollcall.infra.persistence.redis_client import get_redis_factory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _persistence_lifespan(app: Any) -> AsyncIterator[None]:
    # An unreachable database fails startup instead of the first registration.
    manager = get_database_manager()
    await manager.ping()
    logger.info(
        "database_reachable",
        extra={
            "backend": manager.engine.url.get_backend_name(),
            "connection_budget": manager.settings.connection_budget,
        },
    )

    try:
        yield
    finally:
        await manager.dispose()
        logger.info("database_engine_disposed")

        redis_factory = get_redis_factory()
        if redis_factory.connected:
            try:
                await redis_factory.close()
            except Exception:
                logger.warning("redis_client_close_failed", exc_info=True)
            else:
                logger.info("redis_client_closed")


lifespan_contribution = LifespanContribution(
    hook=_persistence_lifespan,
    priority=LIFESPAN_PRIORITY_PERSISTENCE,
)
