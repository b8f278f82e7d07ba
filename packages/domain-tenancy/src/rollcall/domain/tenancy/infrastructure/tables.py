"""SQLAlchemy table definitions for the tenant store.

One table per record type. Codes in ``access_codes`` and
``code_reservations`` share a namespace; the store checks both before
inserting into either. A partial unique index keeps at most one active
code per tenant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Uuid,
    text,
)

from rollcall.infra.persistence.types import UTCDateTime

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

tenants = Table(
    "tenants",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("active_code", String(32), nullable=False),
    Column("version", Integer, nullable=False, server_default=text("1")),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)

access_codes = Table(
    "access_codes",
    metadata,
    Column("code", String(32), primary_key=True),
    Column(
        "tenant_id",
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", String(16), nullable=False),
    Column("generated_at", UTCDateTime, nullable=False),
    Column("expires_at", UTCDateTime, nullable=True),
    Column("generated_by", Uuid, nullable=True),
)

Index("ix_access_codes_tenant_generated", access_codes.c.tenant_id, access_codes.c.generated_at)
Index(
    "uq_access_codes_one_active",
    access_codes.c.tenant_id,
    unique=True,
    postgresql_where=access_codes.c.status == "active",
    sqlite_where=access_codes.c.status == "active",
)

code_reservations = Table(
    "code_reservations",
    metadata,
    Column("code", String(32), primary_key=True),
    Column("tenant_name", String(200), nullable=False),
    Column("reserved_at", UTCDateTime, nullable=False),
    Column("tenant_id", Uuid, nullable=True),
)

profiles = Table(
    "profiles",
    metadata,
    Column("identity_id", Uuid, primary_key=True),
    Column("tenant_id", Uuid, nullable=False, index=True),
    Column("role", String(32), nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, index=True),
    Column("created_at", UTCDateTime, nullable=False),
)

role_assignments = Table(
    "role_assignments",
    metadata,
    Column("identity_id", Uuid, primary_key=True),
    Column("tenant_id", Uuid, primary_key=True),
    Column("role", String(32), nullable=False),
    Column("supervisor", Boolean, nullable=False, default=False),
    Column("status", String(16), nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
)

invitations = Table(
    "invitations",
    metadata,
    Column("code", String(32), primary_key=True),
    Column("tenant_id", Uuid, nullable=False, index=True),
    Column("issued_by", Uuid, nullable=False),
    Column("mode", String(16), nullable=False),
    Column("role", String(32), nullable=False),
    Column("email", String(255), nullable=True),
    Column("status", String(16), nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Column("expires_at", UTCDateTime, nullable=False),
    Column("accepted_by", Uuid, nullable=True),
    Column("accepted_at", UTCDateTime, nullable=True),
)

Index("ix_invitations_pending_expiry", invitations.c.status, invitations.c.expires_at)


async def create_all(engine: AsyncEngine) -> None:
    """Create missing tables. For development and tests; production uses migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
