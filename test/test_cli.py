import asyncio

from sql_event_store import EventCodec, sqlite_event_store
from sql_event_store.cli import main
from conftest import EVENT_TYPES, ItemAdded, pending


def test_schema_command_prints_ddl(capsys):
    assert main(["schema"]) == 0
    out = capsys.readouterr().out
    assert "CREATE TABLE IF NOT EXISTS event_sources" in out
    assert "CREATE TABLE IF NOT EXISTS events" in out


def test_init_then_list_ids_and_prune(db_path, capsys):
    assert main(["init", db_path]) == 0
    assert "Schema ready" in capsys.readouterr().out

    async def seed():
        async with sqlite_event_store(db_path, codec=EventCodec(EVENT_TYPES)) as store:
            await store.save("cart-1", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart")

    asyncio.run(seed())

    assert main(["list-ids", db_path, "Cart"]) == 0
    assert capsys.readouterr().out.split() == ["cart-1"]

    assert main(["prune", db_path]) == 0
    assert capsys.readouterr().out.strip() == "0"


def test_commands_fail_without_schema(db_path, capsys):
    assert main(["prune", db_path]) == 1
    assert "schema missing" in capsys.readouterr().err
