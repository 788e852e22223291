"""
Schema management for the event store.

The table definitions ship as the `schema.sql` resource inside the package and
are read once, at import time, into an immutable tuple. Deployment tooling
applies them at provisioning time; the store only checks that they are there.
"""
from importlib import resources
from typing import List, Tuple

import aiosqlite

from .errors import SchemaMissing

REQUIRED_TABLES = ("event_sources", "events")


def _load_ddl() -> Tuple[str, ...]:
    script = resources.files(__package__).joinpath("schema.sql").read_text(encoding="utf-8")
    return tuple(
        statement.strip() for statement in script.split(";") if statement.strip()
    )


_SCHEMA_DDL = _load_ddl()


def get_schema_ddl() -> List[str]:
    """Returns the ordered table-definition statements."""
    return list(_SCHEMA_DDL)


async def create_schema(conn: aiosqlite.Connection):
    """Applies every DDL statement. Statements are idempotent (`IF NOT EXISTS`)."""
    for statement in _SCHEMA_DDL:
        await conn.execute(statement)
    await conn.commit()


async def missing_tables(conn: aiosqlite.Connection) -> List[str]:
    placeholders = ",".join("?" for _ in REQUIRED_TABLES)
    async with conn.execute(
        f"SELECT name FROM sqlite_master WHERE type = 'table' AND name IN ({placeholders})",
        REQUIRED_TABLES,
    ) as cursor:
        present = {row[0] async for row in cursor}
    return [table for table in REQUIRED_TABLES if table not in present]


async def verify_schema(conn: aiosqlite.Connection):
    """Raises `SchemaMissing` when any required table is absent."""
    missing = await missing_tables(conn)
    if missing:
        raise SchemaMissing(missing)
