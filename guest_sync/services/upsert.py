"""Dialect-aware INSERT .. ON CONFLICT helpers.

Mappings, connections and synced-contact markers are written concurrently by
independent requests; the database resolves those races atomically instead of
a read-then-write in Python.
"""

from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model):
    """Return a dialect ``insert()`` that supports ``on_conflict_*``."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")
