import argparse
import asyncio
import os
import tempfile
import time

from pydantic import BaseModel

from sql_event_store import EventCodec, PendingEvent, fold, sqlite_event_store


class Incremented(BaseModel):
    amount: int = 1


class Decremented(BaseModel):
    amount: int = 1


def apply(count: int, event: BaseModel) -> int:
    if isinstance(event, Incremented):
        return count + event.amount
    if isinstance(event, Decremented):
        return count - event.amount
    return count


async def run_benchmark(num_sources: int, events_per_save: int, saves: int):
    codec = EventCodec({"Incremented": Incremented, "Decremented": Decremented})
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "bench.db")
        async with sqlite_event_store(db_path, codec=codec, create_schema=True) as store:

            async def writer(event_source_id: str):
                version = 0
                for _ in range(saves):
                    events = [
                        PendingEvent(sequence=version + i + 1, event=Incremented())
                        for i in range(events_per_save)
                    ]
                    version = await store.save(event_source_id, version, events, source_type="Counter")

            ids = [f"counter-{n}" for n in range(num_sources)]
            start_write = time.perf_counter()
            await asyncio.gather(*(writer(event_source_id) for event_source_id in ids))
            write_duration = time.perf_counter() - start_write

            start_read = time.perf_counter()
            totals = await asyncio.gather(*(fold(store, event_source_id, apply, 0) for event_source_id in ids))
            read_duration = time.perf_counter() - start_read

    total_events = num_sources * saves * events_per_save
    assert all(total == saves * events_per_save for total in totals)
    print(f"Saved {total_events} events in {write_duration:.4f}s ({total_events / write_duration:,.0f} events/s)")
    print(f"Replayed {total_events} events in {read_duration:.4f}s ({total_events / read_duration:,.0f} events/s)")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--sources", type=int, default=10)
    parser.add_argument("--events-per-save", type=int, default=10)
    parser.add_argument("--saves", type=int, default=100)
    args = parser.parse_args()
    asyncio.run(run_benchmark(args.sources, args.events_per_save, args.saves))


if __name__ == "__main__":
    main()
