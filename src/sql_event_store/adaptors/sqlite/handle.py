"""
This module provides the SQLite implementation of the `EventStore` protocol.

`SQLiteHandle` holds the SQL for a single connection. `SQLiteEventStore` owns
the connection pools and hands a connection to a handle for the duration of one
unit of work. Writes run inside `BEGIN IMMEDIATE` transactions, so every Save and
Prune holds SQLite's write lock from its first read until it commits, and the
version compare-and-swap happens against a value no other writer can change.
"""
from typing import Any, AsyncIterator, Dict, List
from contextlib import aclosing, asynccontextmanager
from datetime import datetime, timezone
import asyncio
import logging
import sqlite3

import aiosqlite

from ...codec import EventCodec
from ...errors import (
    ConcurrencyConflict,
    InvalidEventSequence,
    NotSupported,
    translate_sqlite_error,
)
from ...models import EventSource, PendingEvent, Snapshot, SourcedEvent, StoredEvent


class SQLiteHandle:
    """
    Encapsulates the SQL queries run against one SQLite connection.
    """

    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn

    async def rollback(self):
        """
        Rolls back any open transaction. Queued behind statements that are still
        running, so it also covers a BEGIN whose caller was cancelled. Shielded so a
        second cancellation cannot leave the connection mid-transaction.
        """
        await asyncio.shield(self.conn.rollback())

    async def get_version(self, event_source_id: str) -> int | None:
        async with self.conn.execute(
            "SELECT version FROM event_sources WHERE id = ?", (event_source_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else None

    async def sync(
        self,
        event_source_id: str,
        source_type: str,
        expected_version: int,
        events: List[PendingEvent],
        codec: EventCodec,
    ) -> int:
        """
        Appends events in one transaction, atomically checking the expected version.
        Returns the new version of the event source.
        """
        try:
            await self.conn.execute("BEGIN IMMEDIATE")

            # 1. Read the stored version while holding the write lock
            current_version = await self.get_version(event_source_id)

            # 2. Create the event source on first save
            if current_version is None:
                if expected_version != 0:
                    raise ConcurrencyConflict(event_source_id, expected_version, 0)
                await self.conn.execute(
                    "INSERT INTO event_sources (id, type, version) VALUES (?, ?, 0)",
                    (event_source_id, source_type),
                )
            elif current_version != expected_version:
                raise ConcurrencyConflict(event_source_id, expected_version, current_version)

            # 3. Insert the events with a commit timestamp assigned here
            timestamp = datetime.now(timezone.utc).isoformat()
            rows = []
            for pending in events:
                name, data = codec.encode(pending.event)
                rows.append((event_source_id, name, data, pending.sequence, timestamp))
            await self.conn.executemany(
                "INSERT INTO events (event_source_id, name, data, sequence, timestamp) VALUES (?, ?, ?, ?, ?)",
                rows,
            )

            # 4. Recount the events, guarded by the version we read
            cursor = await self.conn.execute(
                "UPDATE event_sources SET version = (SELECT COUNT(*) FROM events WHERE event_source_id = ?) "
                "WHERE id = ? AND version = ?",
                (event_source_id, event_source_id, expected_version),
            )
            updated = cursor.rowcount
            await cursor.close()
            if updated != 1:
                raise ConcurrencyConflict(
                    event_source_id, expected_version, await self.get_version(event_source_id) or 0
                )

            await self.conn.execute("COMMIT")
            new_version = expected_version + len(events)
            logging.debug(f"Committed {len(events)} events to {event_source_id}, now at version {new_version}")
            return new_version
        except BaseException as e:
            await self.rollback()
            logging.error(f"Failed to save events for {event_source_id}: {e}")
            raise

    async def get_events(self, event_source_id: str, since_version: int = 0) -> AsyncIterator[StoredEvent]:
        """Streams committed events for an event source, in sequence order."""
        async with self.conn.execute(
            "SELECT name, data, sequence, timestamp FROM events "
            "WHERE event_source_id = ? AND sequence > ? ORDER BY sequence",
            (event_source_id, since_version),
        ) as cursor:
            async for name, data, sequence, timestamp_str in cursor:
                yield StoredEvent(
                    event_source_id=event_source_id,
                    sequence=sequence,
                    name=name,
                    data=data,
                    timestamp=datetime.fromisoformat(timestamp_str),
                )

    async def get_ids_for_type(self, source_type: str) -> AsyncIterator[str]:
        async with self.conn.execute(
            "SELECT id FROM event_sources WHERE type = ?", (source_type,)
        ) as cursor:
            async for row in cursor:
                yield row[0]

    async def remove_unused_sources(self) -> int:
        """Deletes event sources with no events inside one write transaction."""
        try:
            await self.conn.execute("BEGIN IMMEDIATE")
            cursor = await self.conn.execute(
                "DELETE FROM event_sources WHERE NOT EXISTS "
                "(SELECT 1 FROM events WHERE events.event_source_id = event_sources.id)"
            )
            removed = cursor.rowcount
            await cursor.close()
            await self.conn.execute("COMMIT")
            return removed
        except BaseException as e:
            await self.rollback()
            logging.error(f"Failed to prune unused event sources: {e}")
            raise

    async def get_event_source(self, event_source_id: str) -> EventSource | None:
        async with self.conn.execute(
            "SELECT id, type, version FROM event_sources WHERE id = ?", (event_source_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return EventSource(id=row[0], type=row[1], version=row[2])
            return None

    async def get_event_count(self, event_source_id: str) -> int:
        async with self.conn.execute(
            "SELECT COUNT(*) FROM events WHERE event_source_id = ?", (event_source_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row[0]

    async def get_last_timestamp(self, event_source_id: str) -> datetime | None:
        """Returns the commit timestamp of the latest event, or None if there are none."""
        async with self.conn.execute(
            "SELECT timestamp FROM events WHERE event_source_id = ? ORDER BY sequence DESC LIMIT 1",
            (event_source_id,),
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return datetime.fromisoformat(row[0])
            return None


def _check_pending(expected_version: int, events: List[PendingEvent]):
    if expected_version < 0:
        raise InvalidEventSequence(f"Expected version must be non-negative, got {expected_version}")
    if not events:
        raise InvalidEventSequence("At least one pending event is required")
    if not all(isinstance(e, PendingEvent) for e in events):
        raise TypeError("All items in events list must be PendingEvent objects")
    for offset, pending in enumerate(events, start=1):
        if pending.sequence != expected_version + offset:
            raise InvalidEventSequence(
                f"Event at position {offset} has sequence {pending.sequence}, "
                f"expected {expected_version + offset}"
            )


class SQLiteEventStore:
    """
    An event store that serves writes from a pool of write connections and
    reads from a pool of read connections. The pools are the only shared
    state; coordination between writers is left to SQLite's transactions.
    """

    def __init__(
        self,
        codec: EventCodec,
        write_pool: asyncio.Queue,
        read_pool: asyncio.Queue,
    ):
        self.codec = codec
        self.write_pool = write_pool
        self.read_pool = read_pool

    @asynccontextmanager
    async def _handle(self, pool: asyncio.Queue) -> AsyncIterator[SQLiteHandle]:
        """Provides a handle with a connection borrowed from a pool."""
        conn = await pool.get()
        try:
            yield SQLiteHandle(conn)
        except sqlite3.Error as e:
            raise translate_sqlite_error(e) from e
        finally:
            if conn.in_transaction:
                await asyncio.shield(conn.rollback())
            await pool.put(conn)

    async def save(
        self,
        event_source_id: str,
        expected_version: int,
        events: List[PendingEvent],
        *,
        source_type: str,
    ) -> int:
        """
        Appends `events` to an event source if it is still at `expected_version`.

        Raises `ConcurrencyConflict` when another writer got there first. Nothing
        is written in that case and retrying is up to the caller.
        """
        _check_pending(expected_version, events)
        async with self._handle(self.write_pool) as handle:
            return await handle.sync(event_source_id, source_type, expected_version, events, self.codec)

    async def load_raw(self, event_source_id: str, since_version: int = 0) -> AsyncIterator[StoredEvent]:
        """Streams committed events with their payloads still encoded."""
        async with self._handle(self.read_pool) as handle:
            async for event in handle.get_events(event_source_id, since_version):
                yield event

    async def load(self, event_source_id: str, since_version: int = 0) -> AsyncIterator[SourcedEvent]:
        """Streams committed events after `since_version`, decoded by the codec."""
        async with aclosing(self.load_raw(event_source_id, since_version)) as stored_events:
            async for stored in stored_events:
                yield SourcedEvent(
                    event_source_id=stored.event_source_id,
                    sequence=stored.sequence,
                    name=stored.name,
                    payload=self.codec.decode(stored.name, stored.data),
                    timestamp=stored.timestamp,
                )

    async def list_ids(self, source_type: str) -> AsyncIterator[str]:
        async with self._handle(self.read_pool) as handle:
            async for event_source_id in handle.get_ids_for_type(source_type):
                yield event_source_id

    async def prune(self) -> int:
        """Removes event sources that have no events. Returns how many were removed."""
        async with self._handle(self.write_pool) as handle:
            removed = await handle.remove_unused_sources()
        logging.debug(f"Pruned {removed} unused event sources")
        return removed

    async def current_version(self, event_source_id: str) -> int:
        async with self._handle(self.read_pool) as handle:
            return await handle.get_version(event_source_id) or 0

    async def get_event_source(self, event_source_id: str) -> EventSource | None:
        """Returns the stored id, type and version, or None for an unknown id."""
        async with self._handle(self.read_pool) as handle:
            return await handle.get_event_source(event_source_id)

    async def metrics(self, event_source_id: str) -> Dict[str, Any]:
        async with self._handle(self.read_pool) as handle:
            version = await handle.get_version(event_source_id) or 0
            return {
                "current_version": version,
                "event_count": await handle.get_event_count(event_source_id),
                "last_timestamp": await handle.get_last_timestamp(event_source_id),
            }

    async def save_snapshot(self, snapshot: Snapshot):
        raise NotSupported("Snapshots are not supported by the SQLite event store")

    async def get_snapshot(self, event_source_id: str) -> Snapshot | None:
        raise NotSupported("Snapshots are not supported by the SQLite event store")
