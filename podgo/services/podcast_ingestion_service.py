"""Podcast feed ingestion service.

Drains a list of feed URLs in fixed-size batches. Within a batch one task
per URL fetches and reconciles its feed, admission-gated by a semaphore;
a batch finishes completely before the next one starts, after a cooldown.
Feed servers and the store are the scarce resources here, so both the
in-flight count and the burst rate across batches are throttled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TYPE_CHECKING

from podgo.models.errors import FetchError, ReconcileError
from podgo.models.feeds import ParsedFeed
from podgo.models.podcasts import IngestionResult
from podgo.services.dedup_index import DedupIndex
from podgo.services.feed_fetcher import fetch_feed
from podgo.services.reconciler import reconcile_feed

if TYPE_CHECKING:
    from podgo.services.store import PodcastStore

logger = logging.getLogger(__name__)

FeedFetcher = Callable[..., Awaitable[ParsedFeed]]

DEFAULT_BATCH_SIZE = 10
DEFAULT_CONCURRENCY_LIMIT = 3
DEFAULT_INTER_BATCH_DELAY = 5.0
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_RUN_TIMEOUT = 600.0


async def run_ingestion_cycle(
    urls: Sequence[str],
    store: PodcastStore,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    inter_batch_delay: float = DEFAULT_INTER_BATCH_DELAY,
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    run_timeout: float = DEFAULT_RUN_TIMEOUT,
    fetcher: FeedFetcher = fetch_feed,
) -> IngestionResult:
    """Fetch and reconcile every feed URL.

    Per-feed fetch and store failures are logged, recorded in the result and
    do not stop the run. Any other exception is fatal: the running batch is
    cancelled and the exception propagates. When ``run_timeout`` expires,
    in-flight work is cancelled and the result is returned with
    ``timed_out`` set; rows already written stay intact.

    Args:
        urls: Feed URLs, processed in order batch by batch
        store: Persistent store
        batch_size: Maximum URLs per batch
        concurrency_limit: Maximum fetch+reconcile tasks running at once
        inter_batch_delay: Seconds to pause between batches
        fetch_timeout: Absolute timeout per feed fetch
        run_timeout: Deadline for the whole run
        fetcher: Feed fetch coroutine, called as ``fetcher(url, timeout=...)``

    Returns:
        IngestionResult with counts and per-feed errors
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
    if inter_batch_delay < 0:
        raise ValueError(f"inter_batch_delay must be >= 0, got {inter_batch_delay}")

    result = IngestionResult(feeds_total=len(urls))
    batches = list(_batched(urls, batch_size))
    logger.info(
        f"Starting podcast ingestion: {len(urls)} feed(s) in {len(batches)} batch(es), "
        f"concurrency {concurrency_limit}"
    )

    deadline = asyncio.timeout(run_timeout)
    try:
        async with deadline:
            index = await DedupIndex.load(store)
            semaphore = asyncio.Semaphore(concurrency_limit)

            for number, batch in enumerate(batches, start=1):
                if number > 1 and inter_batch_delay > 0:
                    await asyncio.sleep(inter_batch_delay)
                logger.info(f"Batch {number}/{len(batches)}: {len(batch)} feed(s)")
                await _run_batch(
                    batch, store, index, semaphore, result, fetcher, fetch_timeout
                )
    except TimeoutError:
        if not deadline.expired():
            raise
        result.timed_out = True
        unprocessed = result.feeds_total - result.feeds_processed - result.feeds_failed
        logger.error(
            f"Ingestion deadline of {run_timeout:g}s exceeded; "
            f"{unprocessed} feed(s) left unprocessed"
        )

    logger.info(
        f"Podcast ingestion complete: {result.feeds_processed} feed(s) processed, "
        f"{result.feeds_failed} failed, {result.podcasts_created} podcast(s) created, "
        f"{result.podcasts_updated} updated, {result.episodes_added} episode(s) added"
    )
    return result


async def _run_batch(
    batch: Sequence[str],
    store: PodcastStore,
    index: DedupIndex,
    semaphore: asyncio.Semaphore,
    result: IngestionResult,
    fetcher: FeedFetcher,
    fetch_timeout: float,
) -> None:
    """Run one task per URL and wait for all of them."""
    try:
        async with asyncio.TaskGroup() as group:
            for url in batch:
                group.create_task(
                    ingest_feed_url(
                        url, store, index, semaphore, result, fetcher, fetch_timeout
                    )
                )
    except ExceptionGroup as errors:
        # Surface the first fatal error rather than the group wrapper
        raise errors.exceptions[0] from None


async def ingest_feed_url(
    url: str,
    store: PodcastStore,
    index: DedupIndex,
    semaphore: asyncio.Semaphore,
    result: IngestionResult,
    fetcher: FeedFetcher = fetch_feed,
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> None:
    """Fetch one feed and reconcile it, recording the outcome in ``result``."""
    async with semaphore:
        try:
            feed = await fetcher(url, timeout=fetch_timeout)
        except FetchError as exc:
            logger.warning(f"Feed error: {url}: {exc.cause}")
            result.record_error(f"Fetch failed for {url}: {exc.cause}")
            return

        logger.info(f"Feed loaded: {url}")

        try:
            feed_result = await reconcile_feed(feed, store, index)
        except ReconcileError as exc:
            logger.error(f"Failed to reconcile {url}: {exc.cause}")
            result.record_error(f"Reconcile failed for {url}: {exc.cause}")
            return

        result.record(feed_result)
        done = result.feeds_processed + result.feeds_failed
        logger.info(f"  [{done}/{result.feeds_total}] {feed_result.podcast_slug} done")


def _batched(urls: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(urls), size):
        yield urls[start : start + size]
