from typing import Any, Callable, TypeVar

from .models import SourcedEvent
from .protocols import EventStore

State = TypeVar("State")


async def fold(
    store: EventStore,
    event_source_id: str,
    apply: Callable[[State, Any], State],
    initial_state: State,
    since_version: int = 0,
) -> State:
    """
    Rebuilds state by applying each replayed payload in sequence order.

    `apply(state, payload)` returns the next state. Pass the state of a known
    version together with `since_version` to fold only the events after it.
    """
    state = initial_state
    event: SourcedEvent
    async for event in store.load(event_source_id, since_version=since_version):
        state = apply(state, event.payload)
    return state
