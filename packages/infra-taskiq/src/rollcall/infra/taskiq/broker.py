"""TaskIQ broker, result backend and scheduler factories.

Production deployments push tasks onto a Redis list consumed by workers and
keep results in Redis. With ``TASKIQ_BACKEND=memory`` tasks run in-process,
which is what tests and single-process development use.

Usage:
    # Start a worker
    # taskiq worker rollcall.app.registry.worker:broker

    # Start the scheduler (single instance only)
    # taskiq scheduler rollcall.app.registry.worker:scheduler --skip-first-run
"""

from __future__ import annotations

import logging
from functools import lru_cache

from taskiq import AsyncBroker, InMemoryBroker, TaskiqScheduler
from taskiq.schedule_sources import LabelScheduleSource
from taskiq_redis import ListQueueBroker, RedisAsyncResultBackend

from rollcall.infra.taskiq.settings import TaskIQSettings, get_taskiq_settings

logger = logging.getLogger(__name__)


def build_result_backend(settings: TaskIQSettings) -> RedisAsyncResultBackend[object]:
    return RedisAsyncResultBackend(
        redis_url=settings.redis_url,
        result_ex_time=settings.result_ttl,
    )


def build_broker(settings: TaskIQSettings) -> AsyncBroker:
    """Create a broker for ``settings.backend``.

    The in-memory broker awaits each task inside ``kiq`` so callers observe
    its effects as soon as the call returns.
    """
    if settings.backend == "memory":
        logger.info("taskiq_broker_created", extra={"backend": "memory"})
        return InMemoryBroker(await_inplace=True)
    logger.info(
        "taskiq_broker_created",
        extra={"backend": "redis", "queue_name": settings.queue_name},
    )
    return ListQueueBroker(
        url=settings.redis_url,
        queue_name=settings.queue_name,
    ).with_result_backend(build_result_backend(settings))


@lru_cache(maxsize=1)
def get_broker() -> AsyncBroker:
    """Get or create the process-wide broker from TaskIQSettings."""
    return build_broker(get_taskiq_settings())


@lru_cache(maxsize=1)
def get_scheduler() -> TaskiqScheduler:
    """Get or create the scheduler for tasks declared with ``schedule=[...]``.

    WARNING: Only run ONE scheduler instance per deployment to avoid
    duplicate execution.
    """
    broker = get_broker()
    return TaskiqScheduler(broker=broker, sources=[LabelScheduleSource(broker)])
