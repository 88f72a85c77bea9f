"""
Tweetheart — Dialect-aware SQL helpers.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def insert_ignore(
    db: AsyncSession,
    model: Any,
    values: dict[str, Any],
    conflict_columns: list[str],
) -> bool:
    """``INSERT … ON CONFLICT DO NOTHING``; returns True when a row was written.

    The unique constraint named by ``conflict_columns`` is the arbiter for
    concurrent writers: exactly one of them inserts, the rest see ``False``
    and read the winner's row.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert_fn = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}") from None

    stmt = (
        insert_fn(model.__table__)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
    )
    result = await db.execute(stmt)
    return (result.rowcount or 0) > 0


async def lock_pair(db: AsyncSession, key: str) -> bool:
    """Serialize transactions that touch the same pair until commit.

    PostgreSQL takes a transaction-scoped advisory lock on ``hashtext(key)``,
    so a second writer blocks until the first commits and then reads its
    rows.  SQLite already serializes writers and needs nothing.  Returns
    whether a lock was taken.
    """
    if db.get_bind().dialect.name != "postgresql":
        return False
    await db.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))
    return True
