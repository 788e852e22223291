"""
The event codec turns domain events into an opaque blob plus a logical type
tag, and back again.

The registry is a plain mapping of tag to pydantic model, handed in by the
domain layer at process start. The store never inspects payloads itself; it
only asks the codec to encode on append and decode on replay.
"""
from typing import Dict, List, Mapping, Tuple, Type

import pydantic_core
from pydantic import BaseModel

from .errors import SerializationError


class EventCodec:
    def __init__(self, registry: Mapping[str, Type[BaseModel]] | None = None):
        self._decoders: Dict[str, Type[BaseModel]] = {}
        self._names: Dict[Type[BaseModel], str] = {}
        for name, event_type in (registry or {}).items():
            self.register(name, event_type)

    def register(self, name: str, event_type: Type[BaseModel]):
        """Binds a logical tag to an event model. Each tag and each model may be bound only once."""
        if not (isinstance(event_type, type) and issubclass(event_type, BaseModel)):
            raise TypeError(f"Event type for '{name}' must be a pydantic model class")
        existing = self._decoders.get(name)
        if existing is not None and existing is not event_type:
            raise ValueError(
                f"Event name '{name}' is already registered to {existing.__name__}"
            )
        existing_name = self._names.get(event_type)
        if existing_name is not None and existing_name != name:
            raise ValueError(
                f"{event_type.__name__} is already registered as '{existing_name}'"
            )
        self._decoders[name] = event_type
        self._names[event_type] = name

    @property
    def names(self) -> List[str]:
        return sorted(self._decoders)

    def encode(self, event: BaseModel) -> Tuple[str, bytes]:
        name = self._names.get(type(event))
        if name is None:
            raise SerializationError(
                f"No event name registered for type {type(event).__name__}"
            )
        try:
            return name, event.model_dump_json().encode("utf-8")
        except pydantic_core.PydanticSerializationError as e:
            raise SerializationError(f"Failed to encode event '{name}': {e}") from e

    def decode(self, name: str, data: bytes) -> BaseModel:
        event_type = self._decoders.get(name)
        if event_type is None:
            raise SerializationError(f"Unknown event name '{name}'")
        try:
            return event_type.model_validate_json(data)
        except pydantic_core.ValidationError as e:
            raise SerializationError(f"Failed to decode event '{name}': {e}") from e
