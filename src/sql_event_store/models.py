"""
This module defines the core data models for the event store using Pydantic.
These models are the data transfer objects exchanged with callers: the events
they hand in for appending, and the committed events handed back on replay.
"""
from pydantic import BaseModel, Field
from datetime import datetime


class EventSource(BaseModel):
    id: str
    type: str  # Logical type name of the aggregate, fixed at creation
    version: int = Field(default=0, ge=0)


class PendingEvent(BaseModel):
    """A not-yet-persisted domain event and the sequence number it will occupy."""

    sequence: int = Field(gt=0)
    event: BaseModel


class StoredEvent(BaseModel):
    event_source_id: str
    sequence: int
    name: str
    data: bytes  # Encoded payload, never interpreted by the store
    timestamp: datetime


class SourcedEvent(BaseModel):
    event_source_id: str
    sequence: int
    name: str
    payload: BaseModel  # Decoded by the EventCodec
    timestamp: datetime


class Snapshot(BaseModel):
    event_source_id: str
    version: int
    state: bytes  # Serialized state
    timestamp: datetime
