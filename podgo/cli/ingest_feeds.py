"""Command-line runner for podcast feed ingestion.

Loads the feed URL list, connects to the store and runs one ingestion
cycle. Intended to be run on a schedule.

Usage:
    python -m podgo.cli.ingest_feeds feeds.json --init-db

Exit codes:
    0 - Run completed (per-feed errors are logged, not fatal)
    1 - Fatal error: feed list unreadable, store unreachable, or crash
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from podgo.config import settings
from podgo.logging_config import setup_logging
from podgo.models.errors import FeedListError, StoreUnavailableError
from podgo.services.feed_list import load_feed_urls
from podgo.services.podcast_ingestion_service import run_ingestion_cycle
from podgo.services.store import PodcastStore
from podgo.utils.db_async import (
    create_engine_from_url,
    describe_database_url,
    dispose_engine,
)

logger = logging.getLogger("ingest_feeds")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Fetch podcast feeds and reconcile them with the podcasts/episodes store.\n\n"
            "Defaults come from the environment (.env); flags override them for one run."
        )
    )
    parser.add_argument(
        "feeds_file",
        nargs="?",
        default=settings.feeds_file,
        help="JSON file containing an array of feed URLs.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.batch_size,
        help="Feed URLs per batch.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.concurrency_limit,
        help="Feeds fetched and reconciled at the same time within a batch.",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.inter_batch_delay,
        help="Seconds to pause between batches.",
    )
    parser.add_argument(
        "--fetch-timeout",
        type=float,
        default=settings.fetch_timeout,
        help="Absolute timeout in seconds for fetching one feed.",
    )
    parser.add_argument(
        "--run-timeout",
        type=float,
        default=settings.run_timeout,
        help="Deadline in seconds for the whole run.",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the podcasts/episodes tables and indexes before ingesting.",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Run the ingestion cycle.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    start_time = datetime.now(timezone.utc)

    try:
        urls = load_feed_urls(args.feeds_file)
    except FeedListError as e:
        logger.error(f"Cannot load feed list: {e}")
        return 1
    logger.info(f"{len(urls)} podcast feed(s) loaded from {args.feeds_file}")
    logger.info(f"Environment: {settings.env}, store: {describe_database_url(settings.database_url)}")

    try:
        engine = create_engine_from_url(settings.database_url, echo=settings.sql_echo)
    except Exception as e:
        logger.error(f"Invalid database URL {describe_database_url(settings.database_url)}: {e}")
        return 1
    store = PodcastStore(engine)
    try:
        try:
            await store.ping()
        except StoreUnavailableError as e:
            logger.error(f"Store unavailable at {describe_database_url(settings.database_url)}: {e}")
            return 1

        if args.init_db:
            await store.create_indexes()

        result = await run_ingestion_cycle(
            urls,
            store,
            batch_size=args.batch_size,
            concurrency_limit=args.concurrency,
            inter_batch_delay=args.delay,
            fetch_timeout=args.fetch_timeout,
            run_timeout=args.run_timeout,
        )

        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            f"Finished in {elapsed:.1f}s: wrote {result.podcasts_created} new podcast(s), "
            f"updated {result.podcasts_updated}, wrote {result.episodes_added} episode(s)"
        )
        for error in result.errors:
            logger.warning(f"Ingestion error: {error}")
        return 0

    except Exception as e:
        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.error(f"Ingestion failed after {elapsed:.1f}s: {e}", exc_info=True)
        return 1

    finally:
        await dispose_engine(engine)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(settings.log_level, sql_echo=settings.sql_echo)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
