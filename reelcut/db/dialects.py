"""Dialect-aware INSERT … ON CONFLICT construction.

Both PostgreSQL and SQLite support ``ON CONFLICT`` upserts, but SQLAlchemy
exposes them through dialect-specific ``insert()`` constructs.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_for(session: AsyncSession):
    """Return the upsert-capable ``insert`` for the session's bound dialect."""
    dialect = session.get_bind().dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upserts are not supported on the '{dialect}' dialect")
