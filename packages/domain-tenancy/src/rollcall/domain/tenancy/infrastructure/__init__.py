"""Tenant store adapters: SQLAlchemy tables and store, and an in-memory store."""

from rollcall.domain.tenancy.infrastructure.memory_store import InMemoryTenantStore
from rollcall.domain.tenancy.infrastructure.sql_store import SqlTenantStore
from rollcall.domain.tenancy.infrastructure.tables import create_all, metadata

__all__ = ["InMemoryTenantStore", "SqlTenantStore", "create_all", "metadata"]
