"""Process-wide async Redis client, opened on first use."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import redis.asyncio as aioredis

from rollcall.infra.persistence.redis_settings import RedisSettings

logger = logging.getLogger(__name__)


class RedisFactory:
    """Owns at most one pooled client.

    Nothing connects until :meth:`get_client` is awaited, so apps that never
    enable the shared membership cache never open a socket. ``connected``
    tells the persistence lifespan whether there is anything to close.
    """

    def __init__(self, settings: RedisSettings) -> None:
        self.settings = settings
        self._client: Any = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def get_client(self) -> Any:
        if self._client is None:
            self._client = aioredis.from_url(
                self.settings.connection_url,
                max_connections=self.settings.pool_size,
                socket_timeout=self.settings.socket_timeout,
                socket_connect_timeout=self.settings.socket_connect_timeout,
            )
            logger.info("redis_client_opened", extra={"db": self.settings.db})
        return self._client

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()


@lru_cache(maxsize=1)
def get_redis_factory() -> RedisFactory:
    return RedisFactory(RedisSettings())
