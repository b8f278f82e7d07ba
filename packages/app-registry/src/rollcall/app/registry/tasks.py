"""Background tasks: verification link delivery and the invitation sweep.

Tasks reach the registry services through the broker state, which the API
lifespan or the worker startup hook fills with :func:`bind_services`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

from taskiq import Context, TaskiqDepends

from rollcall.infra.taskiq import get_taskiq_settings

if TYPE_CHECKING:
    from taskiq import AsyncBroker, AsyncTaskiqDecoratedTask

    from rollcall.app.registry.services import RegistryServices
    from rollcall.infra.taskiq import TaskIQSettings

logger = logging.getLogger(__name__)

SEND_VERIFICATION_LINK = "rollcall.registry.send_verification_link"
EXPIRE_STALE_INVITATIONS = "rollcall.registry.expire_stale_invitations"

SERVICES_STATE_KEY = "registry_services"


def bind_services(broker: AsyncBroker, services: RegistryServices) -> None:
    setattr(broker.state, SERVICES_STATE_KEY, services)


def _services(context: Context) -> RegistryServices:
    services: RegistryServices | None = getattr(context.state, SERVICES_STATE_KEY, None)
    if services is None:
        msg = "Registry services are not bound to this broker"
        raise RuntimeError(msg)
    return services


async def send_verification_link(
    identity_id: str, context: Context = TaskiqDepends(Context)
) -> None:
    services = _services(context)
    await services.gateway.send_verification_link(
        UUID(identity_id), services.verification_redirect_url
    )
    logger.info("verification_link_sent", extra={"identity_id": identity_id})


async def expire_stale_invitations(context: Context = TaskiqDepends(Context)) -> int:
    return await _services(context).invitations.expire_stale()


@dataclass(frozen=True, slots=True)
class RegistryTasks:
    send_verification_link: AsyncTaskiqDecoratedTask[Any, Any]
    expire_stale_invitations: AsyncTaskiqDecoratedTask[Any, Any]


def register_tasks(broker: AsyncBroker, settings: TaskIQSettings | None = None) -> RegistryTasks:
    """Register the registry tasks on ``broker``.

    Registering again on the same broker replaces the earlier registration.
    The sweep carries a cron label for the label schedule source.
    """
    settings = settings or get_taskiq_settings()
    return RegistryTasks(
        send_verification_link=broker.register_task(
            send_verification_link, task_name=SEND_VERIFICATION_LINK
        ),
        expire_stale_invitations=broker.register_task(
            expire_stale_invitations,
            task_name=EXPIRE_STALE_INVITATIONS,
            schedule=[{"cron": settings.invitation_sweep_cron}],
        ),
    )


class TaskiqVerificationNotifier:
    """Queues the verification link instead of sending it in-process."""

    def __init__(self, task: AsyncTaskiqDecoratedTask[Any, Any]) -> None:
        self._task = task

    async def notify(self, identity_id: UUID, email: str) -> None:
        await self._task.kiq(str(identity_id))
        logger.info("verification_link_queued", extra={"identity_id": str(identity_id)})
