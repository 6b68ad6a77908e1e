"""
Command-line interface for the YiBi level indexer.

Provides CLI commands for indexer management:
- init-db: Initialize the database schema
- run: Start the status server with realtime subscription and backfill
- backfill: Run one historical backfill pass and exit
- status: Print the persisted cursor and store counts
- config: Print the effective configuration

Usage:
    yibi-indexer init-db
    yibi-indexer run [--host HOST] [--port PORT]
    yibi-indexer backfill [--from-block N]
    yibi-indexer status
    yibi-indexer config

Environment Variables:
    YIBI_RPC_URL, YIBI_WS_URL, YIBI_CONTRACT_ADDRESS, YIBI_START_BLOCK and the
    others listed in :mod:`yibi_indexer.config`.
"""

import argparse
import asyncio
import json
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from yibi_indexer.indexer.coordinator import SyncReport


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from yibi_indexer.db.schema import init_database

    try:
        init_database()
        print("Database initialized successfully.")
        return 0
    except Exception as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """
    Start the HTTP status surface with the indexer attached.

    ``--host`` and ``--port`` override the ``[server]`` configuration.

    Returns:
        0 on clean shutdown, 1 on error
    """
    from yibi_indexer.api.server import start_server
    from yibi_indexer.config import config

    host = args.host or config.server.host
    port = args.port or config.server.port
    try:
        start_server(host=host, port=port, cfg=config)
        return 0
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0
    except Exception as e:
        print(f"Error running server: {e}", file=sys.stderr)
        return 1


async def _backfill(from_block: int | None) -> "SyncReport":
    from yibi_indexer.config import config
    from yibi_indexer.indexer.service import IndexerService

    service = IndexerService(config)
    try:
        service.coordinator.restore_cursor()
        return await service.coordinator.run_backfill(start_override=from_block)
    finally:
        await service.close()


def cmd_backfill(args: argparse.Namespace) -> int:
    """
    Run one backfill pass without realtime subscription.

    Prints the pass report as JSON.

    Returns:
        0 when the pass completed or backfill is disabled, 1 otherwise
    """
    from yibi_indexer.db.schema import init_database

    try:
        init_database()
        report = asyncio.run(_backfill(args.from_block))
    except Exception as e:
        print(f"Error running backfill: {e}", file=sys.stderr)
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.status in ("completed", "disabled") else 1


def cmd_status(args: argparse.Namespace) -> int:
    """
    Print the persisted backfill cursor and store counts.

    Returns:
        0 on success, 1 on error
    """
    from yibi_indexer.db import levels_repo, solves_repo, sync_state_repo
    from yibi_indexer.db.schema import init_database

    try:
        init_database()
        cursor = sync_state_repo.get_last_synced_block()
        levels = levels_repo.count_levels()
        solves = solves_repo.count_solves()
    except Exception as e:
        print(f"Error reading status: {e}", file=sys.stderr)
        return 1

    print(f"Last synced block: {cursor if cursor is not None else 'none'}")
    print(f"Levels indexed:    {levels}")
    print(f"Solves recorded:   {solves}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the configuration summary."""
    from yibi_indexer.config import print_config_summary

    print_config_summary()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="yibi-indexer",
        description="YiBi level indexer - off-chain replica of the puzzle contract events",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Create the levels, solve_records and sync_state tables if missing.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the indexer with its status server",
        description=(
            "Arm realtime subscriptions, run the historical backfill and serve "
            "/health and /debug/indexer-status."
        ),
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="Server port (default: 3001, or YIBI_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind the server to (default: 0.0.0.0, or YIBI_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    # backfill command
    backfill_parser = subparsers.add_parser(
        "backfill",
        help="Run one historical backfill pass",
        description=(
            "Replay LevelCreated and LevelSolved logs from the start block up to "
            "the current height, then exit."
        ),
    )
    backfill_parser.add_argument(
        "--from-block",
        type=int,
        default=None,
        help="Start block (default: sync.start_block, or YIBI_START_BLOCK env var)",
    )
    backfill_parser.set_defaults(func=cmd_backfill)

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show the backfill cursor and store counts",
    )
    status_parser.set_defaults(func=cmd_status)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show the effective configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    from yibi_indexer.config import config
    from yibi_indexer.logging_setup import configure_logging

    configure_logging(config.logging)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
