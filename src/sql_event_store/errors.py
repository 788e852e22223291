"""
Exception types raised by the event store.

Every error derives from `EventStoreError` so callers can catch the whole family,
while the concrete types let them tell a recoverable version conflict apart from
a broken payload or an unreachable database.
"""
import sqlite3


class EventStoreError(Exception):
    """Base exception for event store errors."""


class ConcurrencyConflict(EventStoreError):
    """Raised when the stored version does not match the caller's expected version."""

    def __init__(self, event_source_id: str, expected_version: int, actual_version: int):
        self.event_source_id = event_source_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrency conflict for event source {event_source_id}: "
            f"expected version {expected_version}, but store is at {actual_version}"
        )


class InvalidEventSequence(EventStoreError, ValueError):
    """Raised when pending events are empty or not numbered after the expected version."""


class SerializationError(EventStoreError):
    """Raised when an event cannot be encoded or a stored payload cannot be decoded."""


class ConnectivityError(EventStoreError):
    """Raised when the backing database is unreachable or a query fails."""


class SchemaMissing(EventStoreError):
    """Raised when the event store tables have not been created."""

    def __init__(self, missing_tables):
        self.missing_tables = list(missing_tables)
        super().__init__(
            f"Event store schema missing tables: {', '.join(self.missing_tables)}. "
            "Apply the statements from get_schema_ddl() first."
        )


class NotSupported(EventStoreError, NotImplementedError):
    """Raised by operations that exist in the interface but are not available."""


def translate_sqlite_error(error: sqlite3.Error) -> EventStoreError:
    """Maps a driver error onto the store's error family."""
    message = str(error)
    if isinstance(error, sqlite3.OperationalError) and message.startswith("no such table"):
        return SchemaMissing([message.rsplit(":", 1)[-1].strip()])
    return ConnectivityError(message)
