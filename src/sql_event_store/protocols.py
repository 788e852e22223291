"""
This module defines the abstract protocol for an event store.

Consumers (repositories, rebuild jobs, maintenance scripts) are written against
`EventStore` rather than the SQLite implementation, so the store they receive
is decided once, where the application wires its resources together.
"""
from typing import Any, AsyncIterator, Dict, List, Protocol

from .models import EventSource, PendingEvent, Snapshot, SourcedEvent, StoredEvent


class EventStore(Protocol):
    """
    Defines the contract that event store implementations must satisfy.
    """

    async def save(
        self,
        event_source_id: str,
        expected_version: int,
        events: List[PendingEvent],
        *,
        source_type: str,
    ) -> int:
        ...

    def load(self, event_source_id: str, since_version: int = 0) -> AsyncIterator[SourcedEvent]:
        ...

    def load_raw(self, event_source_id: str, since_version: int = 0) -> AsyncIterator[StoredEvent]:
        ...

    def list_ids(self, source_type: str) -> AsyncIterator[str]:
        ...

    async def prune(self) -> int:
        ...

    async def current_version(self, event_source_id: str) -> int:
        ...

    async def get_event_source(self, event_source_id: str) -> EventSource | None:
        ...

    async def metrics(self, event_source_id: str) -> Dict[str, Any]:
        ...

    async def save_snapshot(self, snapshot: Snapshot):
        ...

    async def get_snapshot(self, event_source_id: str) -> Snapshot | None:
        ...
