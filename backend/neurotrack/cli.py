"""NeuroTrack CLI - Command Line Interface for operational tasks.

Usage:
    python -m neurotrack.cli <command> [options]

Commands:
    version         Show version information
    check-db        Check database connectivity
    init-db         Create database tables
    process-batch   Run one batch of the MRI scan processor
    requeue-stale   Requeue scans stuck in 'processing'

Examples:
    python -m neurotrack.cli check-db
    python -m neurotrack.cli process-batch --limit 5
    python -m neurotrack.cli requeue-stale --older-than-minutes 30

"""

import argparse
import asyncio
import json
import sys
from datetime import timedelta
from typing import NoReturn

import httpx

from neurotrack.core.config import settings
from neurotrack.core.logging import setup_logging


def print_banner() -> None:
    """Print NeuroTrack CLI banner."""
    print("\n" + "=" * 50)
    print(" NeuroTrack CLI")
    print(" Clinical Dashboard Backend")
    print("=" * 50 + "\n")


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"ERROR: {message}", file=sys.stderr)


def print_success(message: str) -> None:
    """Print success message."""
    print(f"SUCCESS: {message}")


def print_info(message: str) -> None:
    """Print info message."""
    print(f"INFO: {message}")


async def check_database() -> bool:
    """Check database connectivity."""
    from sqlalchemy import text

    from neurotrack.models.base import create_engine, create_session_maker

    engine = create_engine(settings.database)
    try:
        print_info("Checking database connectivity...")
        async with create_session_maker(engine)() as session:
            await session.execute(text("SELECT 1"))
            print_success("Database connection successful")
            return True
    except Exception as e:
        print_error(f"Database connection failed: {e}")
        return False
    finally:
        await engine.dispose()


async def init_database() -> bool:
    """Create all tables that do not exist yet."""
    from neurotrack.models import Base
    from neurotrack.models.base import create_engine

    engine = create_engine(settings.database)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print_success("Database tables created")
        return True
    except Exception as e:
        print_error(f"Failed to initialize database: {e}")
        return False
    finally:
        await engine.dispose()


async def run_processor(limit: int | None = None, stale_after: timedelta | None = None) -> int:
    """Run one batch (or a stale requeue) and print the JSON result."""
    from neurotrack.core.exceptions import TransientIOError
    from neurotrack.models.base import create_engine, create_session_maker
    from neurotrack.services.processing import build_orchestrator

    engine = create_engine(settings.database)
    async with httpx.AsyncClient(follow_redirects=True) as http_client:
        orchestrator = build_orchestrator(settings, create_session_maker(engine), http_client)
        try:
            if stale_after is not None:
                outcomes = await orchestrator.requeue_stale(stale_after)
                payload = {
                    "requeued": len(outcomes),
                    "results": [outcome.to_dict() for outcome in outcomes],
                }
            else:
                result = await orchestrator.run_batch(limit=limit)
                payload = result.to_dict()
        except TransientIOError as e:
            print_error(f"Database error: {e}")
            return 1
        finally:
            await engine.dispose()

    print(json.dumps(payload, indent=2))
    return 0


def cmd_version(_args: argparse.Namespace) -> int:
    """Show version information."""
    print_banner()
    print(f"Version:     {settings.app_version}")
    print(f"Environment: {settings.environment}")
    print(f"Debug:       {settings.debug}")
    print(f"Python:      {sys.version.split()[0]}")
    return 0


def cmd_check_db(_args: argparse.Namespace) -> int:
    """Check database connectivity command."""
    print_banner()
    result = asyncio.run(check_database())
    return 0 if result else 1


def cmd_init_db(_args: argparse.Namespace) -> int:
    """Initialize database command."""
    print_banner()
    result = asyncio.run(init_database())
    return 0 if result else 1


def cmd_process_batch(args: argparse.Namespace) -> int:
    """Run one processing batch command."""
    setup_logging(log_level="DEBUG" if settings.debug else "INFO", json_logs=args.json_logs)
    return asyncio.run(run_processor(limit=args.limit))


def cmd_requeue_stale(args: argparse.Namespace) -> int:
    """Requeue stale scans command."""
    setup_logging(log_level="DEBUG" if settings.debug else "INFO", json_logs=args.json_logs)
    minutes = args.older_than_minutes or settings.processor.stale_processing_minutes
    return asyncio.run(run_processor(stale_after=timedelta(minutes=minutes)))


def main() -> NoReturn:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="neurotrack-cli",
        description="NeuroTrack CLI - Operational command line interface",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"NeuroTrack {settings.app_version}",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # version command
    version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
    )
    version_parser.set_defaults(func=cmd_version)

    # check-db command
    check_db_parser = subparsers.add_parser(
        "check-db",
        help="Check database connectivity",
    )
    check_db_parser.set_defaults(func=cmd_check_db)

    # init-db command
    init_db_parser = subparsers.add_parser(
        "init-db",
        help="Create database tables",
    )
    init_db_parser.set_defaults(func=cmd_init_db)

    # process-batch command
    process_parser = subparsers.add_parser(
        "process-batch",
        help="Run one batch of the MRI scan processor",
    )
    process_parser.add_argument(
        "--limit",
        "-l",
        type=int,
        default=None,
        help=f"Maximum scans to process (default {settings.processor.batch_limit})",
    )
    process_parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON",
    )
    process_parser.set_defaults(func=cmd_process_batch)

    # requeue-stale command
    requeue_parser = subparsers.add_parser(
        "requeue-stale",
        help="Requeue scans stuck in 'processing' (counts as a failed attempt)",
    )
    requeue_parser.add_argument(
        "--older-than-minutes",
        "-m",
        type=int,
        default=None,
        help=(
            "Only scans with no update for this many minutes "
            f"(default {settings.processor.stale_processing_minutes})"
        ),
    )
    requeue_parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON",
    )
    requeue_parser.set_defaults(func=cmd_requeue_stale)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
