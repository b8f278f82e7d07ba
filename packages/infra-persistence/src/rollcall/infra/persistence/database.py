"""Connection settings and the engine owner for the tenant store.

One :class:`DatabaseManager` per process holds the async engine. The SQL
tenant store borrows its session factory and opens one short transaction
per operation; the persistence lifespan pings it at startup and disposes it
at shutdown. Tests build their own managers against SQLite files.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)


class DatabaseSettings(BaseSettings):
    """Where the tenant store lives.

    ``DATABASE_URL`` wins over the individual parts. Without it the store
    talks to PostgreSQL through psycopg, built from ``DATABASE_HOST``,
    ``DATABASE_PORT``, ``DATABASE_USER``, ``DATABASE_PASSWORD`` and
    ``DATABASE_NAME``. ``DATABASE_CREATE_TABLES=true`` makes the registry
    create missing tables at startup, which is meant for development and
    SQLite only; deployed databases are migrated with Alembic.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: SecretStr | None = Field(default=None, description="Full SQLAlchemy URL")
    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = Field(default="postgres")
    password: str = Field(default="postgres", repr=False)
    name: str = Field(default="rollcall", description="Database holding the tenant tables")

    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=5, ge=0, le=100)
    pool_timeout: int = Field(default=30, ge=1, le=300, description="Seconds to wait for a slot")
    pool_recycle: int = Field(default=3600, ge=60, le=86400)
    echo: bool = Field(default=False)
    create_tables: bool = Field(default=False)

    @model_validator(mode="after")
    def _check_url(self) -> DatabaseSettings:
        try:
            make_url(self.database_url)
        except Exception as exc:
            msg = f"Invalid database connection URL: {exc}"
            raise ValueError(msg) from exc
        return self

    @property
    def database_url(self) -> str:
        if self.url is not None:
            return self.url.get_secret_value()
        return (
            f"postgresql+psycopg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"
        )

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    @property
    def connection_budget(self) -> int:
        """Most connections one process may hold; 1 for SQLite."""
        return 1 if self.is_sqlite else self.pool_size + self.max_overflow


class DatabaseManager:
    """Lazily creates, hands out and disposes one async engine.

    The engine is built on first use, so constructing a manager never
    touches the network. After :meth:`dispose` the next access builds a
    fresh engine.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            options: dict[str, Any] = {"echo": self.settings.echo}
            if not self.settings.is_sqlite:
                # SQLite pools take no sizing options.
                options.update(
                    pool_size=self.settings.pool_size,
                    max_overflow=self.settings.max_overflow,
                    pool_timeout=self.settings.pool_timeout,
                    pool_recycle=self.settings.pool_recycle,
                    pool_pre_ping=True,
                )
            self._engine = create_async_engine(self.settings.database_url, **options)
            logger.debug(
                "database_engine_created",
                extra={"backend": self._engine.url.get_backend_name()},
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            self._sessions = async_sessionmaker(
                self.engine, expire_on_commit=False, autoflush=False
            )
        return self._sessions

    async def ping(self) -> None:
        """Round-trip ``SELECT 1``; raises whatever the driver raises."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Close pooled connections. Idempotent."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None


@lru_cache(maxsize=1)
def get_database_manager() -> DatabaseManager:
    """The process-wide manager, configured from the environment."""
    return DatabaseManager(DatabaseSettings())
