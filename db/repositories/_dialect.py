"""Dialect-aware INSERT so ON CONFLICT works on PostgreSQL and SQLite alike."""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(session: AsyncSession, model):
    """Return an INSERT construct supporting on_conflict_* for the bound dialect."""
    if session.bind.dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
