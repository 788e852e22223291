"""
Command line entry point for provisioning and maintaining an event store database.

    sql-event-store schema             print the table definitions
    sql-event-store init DB            create the tables in DB
    sql-event-store prune DB           remove event sources without events
    sql-event-store list-ids DB TYPE   list event source ids of a type
"""
import argparse
import asyncio
import logging
import sys

from .codec import EventCodec
from .errors import EventStoreError
from .schema import get_schema_ddl
from .adaptors.sqlite import sqlite_event_store


async def _init(db_path: str):
    async with sqlite_event_store(db_path, codec=EventCodec(), pool_size=1, create_schema=True):
        pass
    print(f"Schema ready in {db_path}")


async def _prune(db_path: str):
    async with sqlite_event_store(db_path, codec=EventCodec(), pool_size=1) as store:
        removed = await store.prune()
    print(removed)


async def _list_ids(db_path: str, source_type: str):
    async with sqlite_event_store(db_path, codec=EventCodec(), pool_size=1) as store:
        async for event_source_id in store.list_ids(source_type):
            print(event_source_id)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sql-event-store")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("schema", help="print the table definition statements")

    init = commands.add_parser("init", help="create the event store tables")
    init.add_argument("db_path")

    prune = commands.add_parser("prune", help="remove event sources that have no events")
    prune.add_argument("db_path")

    list_ids = commands.add_parser("list-ids", help="list the ids of an event source type")
    list_ids.add_argument("db_path")
    list_ids.add_argument("source_type")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "schema":
        for statement in get_schema_ddl():
            print(f"{statement};")
        return 0

    try:
        if args.command == "init":
            asyncio.run(_init(args.db_path))
        elif args.command == "prune":
            asyncio.run(_prune(args.db_path))
        elif args.command == "list-ids":
            asyncio.run(_list_ids(args.db_path, args.source_type))
    except EventStoreError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
