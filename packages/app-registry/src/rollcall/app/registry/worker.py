"""TaskIQ worker and scheduler entry point.

Usage::

    taskiq worker rollcall.app.registry.worker:broker
    taskiq scheduler rollcall.app.registry.worker:scheduler --skip-first-run
"""

from __future__ import annotations

import logging

from taskiq import TaskiqEvents, TaskiqState

from rollcall.app.registry.services import build_services
from rollcall.app.registry.settings import get_registry_settings
from rollcall.app.registry.tasks import SERVICES_STATE_KEY, bind_services, register_tasks
from rollcall.infra.observability import configure_logging
from rollcall.infra.persistence import get_database_manager
from rollcall.infra.taskiq import get_broker, get_scheduler

logger = logging.getLogger(__name__)

broker = get_broker()
tasks = register_tasks(broker)
scheduler = get_scheduler()


@broker.on_event(TaskiqEvents.WORKER_STARTUP)
async def _worker_startup(state: TaskiqState) -> None:
    configure_logging()
    # A worker delivers links itself; queueing them again would loop.
    settings = get_registry_settings().model_copy(update={"notifier": "gateway"})
    bind_services(broker, build_services(settings))
    logger.info("registry_worker_started")


@broker.on_event(TaskiqEvents.WORKER_SHUTDOWN)
async def _worker_shutdown(state: TaskiqState) -> None:
    services = getattr(state, SERVICES_STATE_KEY, None)
    if services is not None:
        await services.aclose()
    await get_database_manager().dispose()
    logger.info("registry_worker_stopped")
