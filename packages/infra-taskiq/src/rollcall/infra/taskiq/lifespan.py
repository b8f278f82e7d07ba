"""TaskIQ lifespan hook for broker startup/shutdown.

Runs after persistence, since tasks may touch the database, and before the
application services that enqueue tasks.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from rollcall.foundation.application import LIFESPAN_PRIORITY_TASKIQ, LifespanContribution
from rollcall.infra.taskiq.broker import get_broker

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _taskiq_lifespan(app: Any) -> AsyncIterator[None]:
    broker = get_broker()
    await broker.startup()
    logger.info("taskiq_broker_started", extra={"broker": type(broker).__name__})

    try:
        yield
    finally:
        await broker.shutdown()
        logger.info("taskiq_broker_stopped")


lifespan_contribution = LifespanContribution(
    hook=_taskiq_lifespan,
    priority=LIFESPAN_PRIORITY_TASKIQ,
)
