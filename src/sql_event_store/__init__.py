# sql_event_store package

from .codec import EventCodec
from .errors import (
    ConcurrencyConflict,
    ConnectivityError,
    EventStoreError,
    InvalidEventSequence,
    NotSupported,
    SchemaMissing,
    SerializationError,
)
from .models import EventSource, PendingEvent, Snapshot, SourcedEvent, StoredEvent
from .protocols import EventStore
from .replay import fold
from .schema import create_schema, get_schema_ddl, verify_schema
from .adaptors.sqlite import open_event_store, sqlite_event_store

__all__ = [
    "EventCodec",
    "EventStore",
    "EventSource",
    "PendingEvent",
    "StoredEvent",
    "SourcedEvent",
    "Snapshot",
    "EventStoreError",
    "ConcurrencyConflict",
    "ConnectivityError",
    "InvalidEventSequence",
    "NotSupported",
    "SchemaMissing",
    "SerializationError",
    "fold",
    "create_schema",
    "get_schema_ddl",
    "verify_schema",
    "open_event_store",
    "sqlite_event_store",
]
