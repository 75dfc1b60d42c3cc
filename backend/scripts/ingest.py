#!/usr/bin/env python3
"""
CLI tool for news aggregation.

Usage:
    # Run one aggregation pass over all due sources
    python -m scripts.ingest run

    # Refresh a single source regardless of its interval
    python -m scripts.ingest run --source "Tech News"

    # List configured sources
    python -m scripts.ingest sources

    # Create default categories and sources
    python -m scripts.ingest seed

    # Run scheduler (continuous)
    python -m scripts.ingest serve --interval 60
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Optional

import structlog

from newswire.config import Settings, get_settings
from newswire.core.logging import configure_logging
from newswire.models.database import Database
from newswire.services.aggregation import AggregationScheduler, NewsAggregator
from newswire.services.seed import seed_defaults
from newswire.storage import SQLAlchemyNewsStore

logger = structlog.get_logger(__name__)


async def create_store(settings: Settings, database_url: Optional[str] = None) -> SQLAlchemyNewsStore:
    """Create the database store, creating tables if needed."""
    database = Database(database_url or settings.database_url)
    await database.create_tables()
    return SQLAlchemyNewsStore(database)


async def cmd_run(args, settings: Settings) -> int:
    """Run aggregation once."""
    store = await create_store(settings, args.database_url)
    aggregator = NewsAggregator(store, settings=settings)

    try:
        if args.source:
            source = await store.find_source_by_name(args.source)
            if source is None:
                print(f"Unknown source: {args.source}")
                return 1
            results = [await aggregator.process_source(source)]
            total = results[0].new
            cancelled = False
        else:
            report = await aggregator.run_report(timeout=args.timeout)
            results = report.results
            total = report.total_new
            cancelled = report.cancelled
    finally:
        await aggregator.shutdown()
        await store.close()

    if args.json:
        print(json.dumps({
            "total_new": total,
            "cancelled": cancelled,
            "sources": [str(r) for r in results],
        }, indent=2))
        return 0

    print("\n" + "=" * 60)
    print("AGGREGATION RESULTS")
    print("=" * 60)
    for result in results:
        print(result)
        if result.error:
            print(f"    error: {result.error}")
    print("-" * 60)
    print(f"New articles: {total}" + (" (run timed out)" if cancelled else ""))

    return 0


async def cmd_sources(args, settings: Settings) -> int:
    """Show configured sources."""
    store = await create_store(settings, args.database_url)
    try:
        sources = await store.list_active_sources_by_priority_desc()
    finally:
        await store.close()

    now = datetime.utcnow()

    print("\n" + "=" * 50)
    print("ACTIVE SOURCES")
    print("=" * 50)
    print(f"Total sources: {len(sources)}")
    print()

    for source in sources:
        print(f"  {source.name}")
        print(f"    Kind: {source.kind.value}")
        print(f"    Endpoint: {source.api_url or '-'}")
        print(f"    Parameters: {source.parameters or '-'}")
        print(f"    Priority: {source.priority}")
        print(f"    Refresh: every {source.refresh_interval_minutes} min")
        print(f"    Last updated: {source.last_updated or 'never'}")
        print(f"    Due: {'yes' if source.is_due(now) else 'no'}")
        print()

    return 0


async def cmd_seed(args, settings: Settings) -> int:
    """Create default categories and sources."""
    store = await create_store(settings, args.database_url)
    try:
        counts = await seed_defaults(store)
    finally:
        await store.close()

    print(f"Categories created: {counts['categories_created']}")
    print(f"Sources created: {counts['sources_created']}")
    return 0


async def cmd_serve(args, settings: Settings) -> int:
    """Run continuous scheduler."""
    store = await create_store(settings, args.database_url)
    aggregator = NewsAggregator(store, settings=settings)
    scheduler = AggregationScheduler(aggregator, interval_minutes=args.interval)

    print(f"Starting scheduler (aggregate every {args.interval} minutes)")
    print("Press Ctrl+C to stop")

    scheduler.start(run_immediately=True)
    try:
        while scheduler.is_running:
            await asyncio.sleep(60)
            logger.debug("Scheduler status", **scheduler.get_status())
    finally:
        scheduler.shutdown()
        await aggregator.shutdown()
        await store.close()

    return 0


COMMANDS = {
    "run": cmd_run,
    "sources": cmd_sources,
    "seed": cmd_seed,
    "serve": cmd_serve,
}


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Newswire - News Aggregation CLI"
    )
    parser.add_argument(
        "--database-url",
        help="Override the database URL from settings"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run aggregation once")
    run_parser.add_argument(
        "--source", "-s",
        help="Refresh only this source, ignoring its refresh interval"
    )
    run_parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Cancel unfinished sources after this many seconds"
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON"
    )

    # Sources command
    subparsers.add_parser("sources", help="List active sources")

    # Seed command
    subparsers.add_parser("seed", help="Create default categories and sources")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run continuous scheduler")
    serve_parser.add_argument(
        "--interval", "-i",
        type=int,
        default=settings.aggregation_interval_minutes,
        help=f"Aggregation interval in minutes (default: {settings.aggregation_interval_minutes})"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    configure_logging(settings.log_level, secrets=[settings.newsapi_key])

    parser = build_parser(settings)
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
