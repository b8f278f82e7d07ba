"""TaskIQ configuration using Pydantic settings.

Settings are loaded from environment variables with the ``TASKIQ_`` prefix.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaskIQSettings(BaseSettings):
    """Configuration for the TaskIQ broker and scheduler.

    Environment Variables:
        TASKIQ_BACKEND: ``redis`` for a Redis list queue, ``memory`` to run
            tasks in-process (default: redis)
        TASKIQ_REDIS_URL: Redis URL for the queue and result backend
            (default: redis://localhost:6379/1, database 1 keeps task keys
            away from the membership cache on database 0)
        TASKIQ_QUEUE_NAME: Redis list the workers consume (default: rollcall)
        TASKIQ_RESULT_TTL: Result backend TTL in seconds (default: 3600)
        TASKIQ_INVITATION_SWEEP_CRON: Schedule of the invitation expiry sweep

    Example:
        >>> TaskIQSettings().redis_url
        'redis://localhost:6379/1'
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKIQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="Queue implementation",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/1",
        description="Redis URL for TaskIQ broker (database 1 by default)",
    )
    queue_name: str = Field(
        default="rollcall",
        min_length=1,
        description="Redis list consumed by workers",
    )
    result_ttl: int = Field(
        default=3600,
        ge=60,
        le=86400,
        description="Result backend TTL in seconds",
    )
    invitation_sweep_cron: str = Field(
        default="*/15 * * * *",
        description="Cron expression for expire_stale_invitations",
    )


@lru_cache(maxsize=1)
def get_taskiq_settings() -> TaskIQSettings:
    """Get cached TaskIQ settings singleton."""
    return TaskIQSettings()
