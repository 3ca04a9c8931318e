"""OPTLINE — Dialect-specific INSERT for ON CONFLICT upserts."""

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel.ext.asyncio.session import AsyncSession


def insert_for(session: AsyncSession):
    """Return the ``insert`` constructor supporting ``on_conflict_*`` for this bind."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise ValueError(f"Upserts are not supported on dialect {dialect!r}")
