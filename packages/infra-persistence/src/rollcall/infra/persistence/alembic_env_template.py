"""Async Alembic ``env.py`` helpers.

Import into a migration environment's ``env.py``::

    import asyncio

    from alembic import context

    from rollcall.domain.tenancy.infrastructure import metadata
    from rollcall.infra.persistence.alembic_env_template import (
        run_async_migrations,
        run_offline_migrations,
    )
    from rollcall.infra.persistence.database import get_database_manager

    manager = get_database_manager()
    if context.is_offline_mode():
        run_offline_migrations(manager.settings.database_url, metadata)
    else:
        asyncio.run(run_async_migrations(manager.engine, metadata))
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from alembic import context

if TYPE_CHECKING:
    from sqlalchemy import Connection, MetaData
    from sqlalchemy.ext.asyncio import AsyncEngine


def _do_run_migrations(connection: Connection, target_metadata: MetaData) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations(engine: AsyncEngine, target_metadata: MetaData) -> None:
    """Run migrations over an async engine, then dispose it.

    Args:
        engine: SQLAlchemy ``AsyncEngine`` to migrate.
        target_metadata: Table metadata for autogenerate support.
    """
    async with engine.connect() as connection:
        await connection.run_sync(_do_run_migrations, target_metadata)
    await engine.dispose()


def run_offline_migrations(url: str, target_metadata: MetaData) -> None:
    """Emit migration SQL without connecting (``alembic upgrade --sql``)."""
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
