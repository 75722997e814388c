"""
Dialect-specific INSERT constructs for upserts.

PostgreSQL runs in production and SQLite in tests; both support
ON CONFLICT through their dialect's ``insert``.
"""

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def upsert_insert(session: AsyncSession, table: Table):
    """Return an ``insert`` for ``table`` that supports ``on_conflict_do_*``."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not supported on dialect {dialect}")
