from .factory import open_event_store, sqlite_event_store
from .handle import SQLiteEventStore, SQLiteHandle

__all__ = ["open_event_store", "sqlite_event_store", "SQLiteEventStore", "SQLiteHandle"]
