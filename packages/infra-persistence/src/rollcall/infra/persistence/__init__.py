"""Rollcall Infra Persistence -- database engine, Redis client and column types."""

from rollcall.infra.persistence.database import (
    DatabaseManager,
    DatabaseSettings,
    get_database_manager,
)
from rollcall.infra.persistence.lifespan import lifespan_contribution
from rollcall.infra.persistence.redis_client import RedisFactory, get_redis_factory
from rollcall.infra.persistence.redis_settings import RedisSettings
from rollcall.infra.persistence.types import UTCDateTime

__all__ = [
    "DatabaseManager",
    "DatabaseSettings",
    "RedisFactory",
    "RedisSettings",
    "UTCDateTime",
    "get_database_manager",
    "get_redis_factory",
    "lifespan_contribution",
]
