from typing import AsyncIterator, Dict, List
from contextlib import asynccontextmanager
import asyncio
import logging
import os
import pathlib
import shutil
import sqlite3
import tempfile
import urllib.parse

import aiosqlite

from ...codec import EventCodec
from ...errors import translate_sqlite_error
from ...schema import create_schema as apply_schema, verify_schema
from .handle import SQLiteEventStore


async def _connect(
    connect_string: str,
    *,
    uri: bool,
    cache_size_kib: int,
    busy_timeout_ms: int,
    writable: bool,
) -> aiosqlite.Connection:
    # isolation_level=None leaves transaction control to explicit BEGIN/COMMIT
    conn = await aiosqlite.connect(connect_string, uri=uri, isolation_level=None)
    if writable:
        await conn.execute("PRAGMA journal_mode=WAL;")
        await conn.execute("PRAGMA synchronous = NORMAL;")
        await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute(f"PRAGMA cache_size = {cache_size_kib};")
    await conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
    return conn


@asynccontextmanager
async def sqlite_event_store(
    db_path: str,
    *,
    codec: EventCodec,
    pool_size: int = 10,
    cache_size_kib: int = -16384,
    busy_timeout_ms: int = 5000,
    create_schema: bool = False,
) -> AsyncIterator[SQLiteEventStore]:
    """
    Opens an event store backed by the SQLite database at `db_path`.

    Used as an async context manager, it creates a pool of write connections
    and a pool of read-only connections, yields a `SQLiteEventStore` bound to
    them, and closes every connection on exit. `":memory:"` gives a private
    database in a temporary file that is deleted on exit.

    With `create_schema=True` the tables are created if needed; otherwise their
    absence raises `SchemaMissing` on entry.
    """
    if not db_path:
        raise ValueError("`db_path` must be provided.")
    if pool_size < 1:
        raise ValueError("`pool_size` must be at least 1.")

    temp_dir = None
    if db_path == ":memory:":
        # A private WAL file keeps reads from blocking on in-flight writes,
        # which shared-cache in-memory databases cannot do.
        temp_dir = tempfile.mkdtemp(prefix="sql_event_store_")
        write_path = os.path.join(temp_dir, "events.db")
    else:
        write_path = db_path
    read_connect_string = pathlib.Path(write_path).absolute().as_uri() + "?mode=ro"

    connections: List[aiosqlite.Connection] = []
    write_pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)
    read_pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)

    async def cleanup():
        """Closes all database connections and removes any temporary database."""
        await asyncio.gather(*(conn.close() for conn in connections))
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)
        logging.info(f"Event store closed for {db_path}")

    try:
        for _ in range(pool_size):
            conn = await _connect(
                write_path,
                uri=False,
                cache_size_kib=cache_size_kib,
                busy_timeout_ms=busy_timeout_ms,
                writable=True,
            )
            connections.append(conn)
            await write_pool.put(conn)

        schema_conn = connections[0]
        if create_schema:
            await apply_schema(schema_conn)
        await verify_schema(schema_conn)

        for _ in range(pool_size):
            conn = await _connect(
                read_connect_string,
                uri=True,
                cache_size_kib=cache_size_kib,
                busy_timeout_ms=busy_timeout_ms,
                writable=False,
            )
            connections.append(conn)
            await read_pool.put(conn)
    except sqlite3.Error as e:
        await cleanup()
        raise translate_sqlite_error(e) from e
    except BaseException:
        await cleanup()
        raise

    logging.info(f"Event store opened for {db_path} with {pool_size} write and {pool_size} read connections")
    try:
        yield SQLiteEventStore(codec=codec, write_pool=write_pool, read_pool=read_pool)
    finally:
        await cleanup()


def _db_path_from_url(url: str | None) -> str:
    # If no URL is provided, default to an in-memory SQLite database.
    if not url:
        return ":memory:"

    scheme = url.split("://", 1)[0] if "://" in url else ""
    if scheme != "sqlite":
        raise ValueError(f"Unsupported scheme: {scheme}. Only 'sqlite' is supported.")

    db_path = urllib.parse.urlparse(url).path
    if os.name == "nt" and db_path.startswith("/") and not db_path.startswith("//"):
        db_path = db_path[1:]
    if not db_path or db_path == "/":
        db_path = ":memory:"
    return db_path


def open_event_store(config: Dict, codec: EventCodec):
    """
    Opens an event store from a configuration mapping such as
    `{"url": "sqlite:////var/lib/app/events.db", "pool_size": 4}`.
    """
    options = dict(config)
    db_path = _db_path_from_url(options.pop("url", None))
    return sqlite_event_store(db_path, codec=codec, **options)
