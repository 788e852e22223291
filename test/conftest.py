import os
from typing import List

import pytest
from pytest_asyncio import fixture
from pydantic import BaseModel

from sql_event_store import EventCodec, PendingEvent, sqlite_event_store


class OrderPlaced(BaseModel):
    order_id: str
    total: float


class ItemAdded(BaseModel):
    sku: str
    quantity: int


class OrderShipped(BaseModel):
    carrier: str
    tracking: List[str] = []


EVENT_TYPES = {
    "OrderPlaced": OrderPlaced,
    "ItemAdded": ItemAdded,
    "OrderShipped": OrderShipped,
}


def pending(start_version: int, *events: BaseModel) -> List[PendingEvent]:
    """Numbers events contiguously after `start_version`, as an aggregate would."""
    return [
        PendingEvent(sequence=start_version + i + 1, event=event)
        for i, event in enumerate(events)
    ]


@pytest.fixture
def codec():
    return EventCodec(EVENT_TYPES)


@pytest.fixture
def db_path(tmp_path):
    return os.path.join(tmp_path, "events.db")


@fixture
async def store(db_path, codec):
    """Provides a store over a fresh file database for each test."""
    async with sqlite_event_store(db_path, codec=codec, pool_size=4, create_schema=True) as event_store:
        yield event_store
