import asyncio
import os

import pytest

from sql_event_store import SchemaMissing, open_event_store, sqlite_event_store
from conftest import ItemAdded, pending


@pytest.mark.asyncio
async def test_missing_schema_is_reported_on_open(db_path, codec):
    with pytest.raises(SchemaMissing) as excinfo:
        async with sqlite_event_store(db_path, codec=codec):
            pass
    assert excinfo.value.missing_tables == ["event_sources", "events"]


@pytest.mark.asyncio
async def test_schema_created_once_and_reused(db_path, codec):
    async with sqlite_event_store(db_path, codec=codec, create_schema=True) as store:
        await store.save("A", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart")

    # Reopen without create_schema: data survives
    async with sqlite_event_store(db_path, codec=codec) as store:
        events = [e async for e in store.load("A")]
        assert [e.payload for e in events] == [ItemAdded(sku="x", quantity=1)]


@pytest.mark.asyncio
async def test_in_memory_store(codec):
    async with sqlite_event_store(":memory:", codec=codec, pool_size=2, create_schema=True) as store:
        assert await store.save("A", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart") == 1
        assert [e.sequence async for e in store.load("A")] == [1]


@pytest.mark.asyncio
async def test_in_memory_stores_are_private(codec):
    async with sqlite_event_store(":memory:", codec=codec, create_schema=True) as first:
        await first.save("A", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart")
        async with sqlite_event_store(":memory:", codec=codec, create_schema=True) as second:
            assert await second.current_version("A") == 0


@pytest.mark.asyncio
async def test_open_from_url_config(db_path, codec):
    config = {"url": f"sqlite:///{db_path}", "pool_size": 2, "create_schema": True}
    async with open_event_store(config, codec) as store:
        assert await store.save("A", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart") == 1

    async with open_event_store({"url": f"sqlite:///{db_path}"}, codec) as store:
        assert await store.current_version("A") == 1


@pytest.mark.asyncio
async def test_open_without_url_uses_memory(codec):
    async with open_event_store({"create_schema": True}, codec) as store:
        assert await store.current_version("A") == 0


@pytest.mark.asyncio
async def test_unsupported_scheme(tmp_path, codec):
    config = {"url": f"postgres://{tmp_path}/events"}
    with pytest.raises(ValueError, match="Unsupported scheme: postgres. Only 'sqlite' is supported."):
        async with open_event_store(config, codec):
            pass


@pytest.mark.asyncio
async def test_invalid_pool_size(db_path, codec):
    with pytest.raises(ValueError, match="pool_size"):
        async with sqlite_event_store(db_path, codec=codec, pool_size=0):
            pass


@pytest.mark.asyncio
async def test_in_memory_load_does_not_block_on_uncommitted_save(codec):
    async with sqlite_event_store(":memory:", codec=codec, pool_size=2, create_schema=True) as store:
        await store.save("A", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart")

        writer = await store.write_pool.get()
        try:
            async with writer.execute("PRAGMA database_list") as cursor:
                database_file = (await cursor.fetchone())[2]

            await writer.execute("BEGIN IMMEDIATE")
            await writer.execute(
                "INSERT INTO events (event_source_id, name, data, sequence, timestamp) VALUES (?, ?, ?, ?, ?)",
                ("A", "ItemAdded", b'{"sku": "y", "quantity": 2}', 2, "2024-01-01T00:00:00+00:00"),
            )

            assert [e.sequence async for e in store.load("A")] == [1]
            assert await store.current_version("A") == 1

            await writer.execute("ROLLBACK")
        finally:
            await store.write_pool.put(writer)

        # A second writer waits on the lock instead of failing
        results = await asyncio.gather(
            store.save("B", 0, pending(0, ItemAdded(sku="b", quantity=1)), source_type="Cart"),
            store.save("C", 0, pending(0, ItemAdded(sku="c", quantity=1)), source_type="Cart"),
        )
        assert results == [1, 1]

    assert database_file
    assert not os.path.exists(database_file)


@pytest.mark.asyncio
async def test_database_path_with_uri_characters(tmp_path, codec):
    directory = tmp_path / "a?b#c%d"
    directory.mkdir()
    db_path = str(directory / "events.db")

    async with sqlite_event_store(db_path, codec=codec, pool_size=2, create_schema=True) as store:
        await store.save("A", 0, pending(0, ItemAdded(sku="x", quantity=1)), source_type="Cart")

        assert [e.payload async for e in store.load("A")] == [ItemAdded(sku="x", quantity=1)]
        assert [i async for i in store.list_ids("Cart")] == ["A"]
        assert (await store.metrics("A"))["event_count"] == 1

    assert os.path.exists(db_path)
