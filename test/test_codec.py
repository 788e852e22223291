import pytest
from pydantic import BaseModel

from sql_event_store import EventCodec, SerializationError
from conftest import EVENT_TYPES, ItemAdded, OrderPlaced, OrderShipped


def test_encode_decode_registered_events(codec):
    for event in (
        OrderPlaced(order_id="o-1", total=99.95),
        ItemAdded(sku="sku-1", quantity=3),
        OrderShipped(carrier="dhl", tracking=["a", "b"]),
    ):
        name, data = codec.encode(event)
        assert isinstance(data, bytes)
        assert name == type(event).__name__
        assert codec.decode(name, data) == event


def test_decode_unknown_name(codec):
    with pytest.raises(SerializationError, match="Unknown event name 'Refunded'"):
        codec.decode("Refunded", b"{}")


def test_decode_invalid_payload(codec):
    with pytest.raises(SerializationError):
        codec.decode("ItemAdded", b'{"sku": "x"}')
    with pytest.raises(SerializationError):
        codec.decode("ItemAdded", b"\x00\x01")


def test_encode_unregistered_type(codec):
    class Refunded(BaseModel):
        amount: float

    with pytest.raises(SerializationError, match="Refunded"):
        codec.encode(Refunded(amount=1.0))


def test_register_after_construction():
    codec = EventCodec()
    assert codec.names == []
    codec.register("Placed", OrderPlaced)
    codec.register("Placed", OrderPlaced)  # same binding is a no-op
    assert codec.names == ["Placed"]
    assert codec.encode(OrderPlaced(order_id="o", total=1.0))[0] == "Placed"


def test_register_conflicting_binding():
    codec = EventCodec(EVENT_TYPES)
    with pytest.raises(ValueError, match="already registered"):
        codec.register("OrderPlaced", ItemAdded)


def test_register_model_under_second_name():
    codec = EventCodec(EVENT_TYPES)
    with pytest.raises(ValueError, match="already registered as 'OrderPlaced'"):
        codec.register("Placed", OrderPlaced)
    assert codec.names == sorted(EVENT_TYPES)
    assert codec.encode(OrderPlaced(order_id="o", total=1.0))[0] == "OrderPlaced"


def test_register_rejects_non_models():
    codec = EventCodec()
    with pytest.raises(TypeError):
        codec.register("Dict", dict)
