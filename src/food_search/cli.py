"""Command line entrypoint for offline cache maintenance."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import pydantic

from food_search.app_logging import configure_logging
from food_search.containers import AppContainer, build_container
from food_search.domain.errors import IngestionFatalError

_logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="food-search", description="Maintain the cached food database."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest", help="Load the Open Food Facts product dump into the cache"
    )
    ingest.add_argument("path", type=Path, help="Path to the tab separated dump")
    ingest.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Keep only the best N foods (default: every accepted food)",
    )
    ingest.add_argument(
        "--batch-size", type=int, default=None, help="Rows per upsert batch"
    )

    seed = subparsers.add_parser("seed", help="Seed the cache from the remote provider")
    seed.add_argument(
        "--delay", type=float, default=None, help="Seconds to wait before each request"
    )

    subparsers.add_parser("stats", help="Print cache statistics")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return an exit status."""
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        container = build_container()
    except pydantic.ValidationError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 1

    return asyncio.run(_run(container, args))


async def _run(container: AppContainer, args: argparse.Namespace) -> int:
    """Dispatch a command and close resources on the same event loop."""
    try:
        if args.command == "ingest":
            return _ingest(container, args)
        if args.command == "seed":
            return await _seed(container, args)
        return _stats(container)
    finally:
        await container.close_resources()


def _ingest(container: AppContainer, args: argparse.Namespace) -> int:
    engine = container.ingestion_engine
    if args.batch_size is not None:
        engine.batch_size = args.batch_size
    try:
        report = engine.run(args.path, target_count=args.limit)
    except IngestionFatalError as exc:
        _logger.error("%s", exc)
        return 1
    for line in report.summary_lines():
        print(line)
    return 0


async def _seed(container: AppContainer, args: argparse.Namespace) -> int:
    seeder = container.seeder
    if args.delay is not None:
        seeder.delay_seconds = args.delay
    report = await seeder.seed()
    print(f"Foods added: {report.added}")
    print(f"Terms skipped: {report.skipped}")
    print(f"Errors: {len(report.errors)}")
    for label, error in report.errors:
        print(f"  {label}: {error}")
    return 0


def _stats(container: AppContainer) -> int:
    stats = container.search_service.get_cache_stats()
    if stats is None:
        return 1
    for key, value in stats.items():
        print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
