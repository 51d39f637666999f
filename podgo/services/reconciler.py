"""Reconciliation of one fetched feed against stored podcasts and episodes.

Decides insert vs. update for the podcast, computes the genuinely new
episodes and writes them in one bulk insert.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from podgo.models.errors import ReconcileError
from podgo.models.feeds import (
    FeedEnclosure,
    FeedOwner,
    ItunesFeedExtension,
    ParsedFeed,
    ParsedItem,
)
from podgo.models.podcasts import FeedReconcileResult, PodcastUpdate
from podgo.schemas.episodes import Episode
from podgo.schemas.podcasts import Podcast
from podgo.services.dedup_index import DedupIndex, PodcastClaim
from podgo.utils.slug import unique_slug

if TYPE_CHECKING:
    from podgo.services.store import PodcastStore

logger = logging.getLogger(__name__)

_STORE_ERRORS = (SQLAlchemyError, OSError)


async def reconcile_feed(
    feed: ParsedFeed,
    store: PodcastStore,
    index: DedupIndex,
) -> FeedReconcileResult:
    """Merge a parsed feed into the store.

    Args:
        feed: Parsed feed; ``feed.self_link`` is the podcast's dedup key
        store: Persistent store
        index: Dedup state shared by all tasks of the run

    Returns:
        FeedReconcileResult with podcast and episode counts

    Raises:
        ReconcileError: If reading or writing store state fails for this feed
    """
    async with index.feed_lock(feed.self_link):
        claim = await index.claim_podcast(feed.self_link, feed.title)
        if claim.is_new:
            podcast = await _insert_podcast(feed, claim, store, index)
        else:
            podcast = await _update_podcast(feed, store)

    result = FeedReconcileResult(
        feed_url=feed.self_link,
        podcast_slug=podcast.slug,
        podcast_created=claim.is_new,
        podcast_updated=not claim.is_new,
    )
    await _reconcile_episodes(feed, podcast, store, index, result)

    logger.info(
        f"  {podcast.slug}: {'created' if claim.is_new else 'updated'}, "
        f"{result.episodes_added} episode(s) added, {result.episodes_skipped} known, "
        f"{result.episodes_filtered} without iTunes metadata"
    )
    return result


async def _insert_podcast(
    feed: ParsedFeed,
    claim: PodcastClaim,
    store: PodcastStore,
    index: DedupIndex,
) -> Podcast:
    podcast = build_podcast(feed, claim.slug)
    try:
        return await store.insert_podcast(podcast)
    except _STORE_ERRORS as exc:
        await index.release_podcast(claim)
        raise ReconcileError(feed.url, f"podcast insert failed: {exc}") from exc


async def _update_podcast(feed: ParsedFeed, store: PodcastStore) -> Podcast:
    try:
        podcast = await store.get_podcast_by_feed(feed.self_link)
    except _STORE_ERRORS as exc:
        raise ReconcileError(feed.url, f"podcast lookup failed: {exc}") from exc

    if podcast is None or podcast.id is None:
        raise ReconcileError(feed.url, f"podcast for {feed.self_link} missing from store")

    try:
        await store.update_podcast(podcast.id, build_podcast_update(feed))
    except _STORE_ERRORS as exc:
        raise ReconcileError(feed.url, f"podcast update failed: {exc}") from exc
    return podcast


async def _reconcile_episodes(
    feed: ParsedFeed,
    podcast: Podcast,
    store: PodcastStore,
    index: DedupIndex,
    result: FeedReconcileResult,
) -> None:
    async with index.episode_lock(podcast.slug):
        try:
            keys = await index.episode_keys(podcast.slug, store)
        except _STORE_ERRORS as exc:
            raise ReconcileError(feed.url, f"episode lookup failed: {exc}") from exc

        new_episodes: list[Episode] = []
        for item in feed.items:
            if item.itunes is None:
                result.episodes_filtered += 1
                continue
            if not item.guid:
                logger.warning(f"  Skipping item without GUID: {item.title[:60]}")
                result.episodes_skipped += 1
                continue
            if item.guid in keys.guids:
                result.episodes_skipped += 1
                continue

            episode = build_episode(
                item, podcast, feed, unique_slug(item.title, keys.slugs)
            )
            keys.guids.add(episode.guid)
            keys.slugs.add(episode.slug)
            new_episodes.append(episode)

        try:
            result.episodes_added = await store.insert_episodes(new_episodes)
        except _STORE_ERRORS as exc:
            keys.guids.difference_update(e.guid for e in new_episodes)
            keys.slugs.difference_update(e.slug for e in new_episodes)
            raise ReconcileError(feed.url, f"episode insert failed: {exc}") from exc


def build_podcast(feed: ParsedFeed, slug: str) -> Podcast:
    """Construct a new Podcast row from a parsed feed."""
    itunes = feed.itunes or ItunesFeedExtension()
    owner = itunes.owner or FeedOwner()
    return Podcast(
        title=feed.title,
        categories=list(feed.categories),
        link=feed.link,
        description=feed.description,
        subtitle=itunes.subtitle,
        owner_name=owner.name,
        owner_email=owner.email,
        author=itunes.author,
        image=itunes.image,
        feed=feed.self_link,
        slug=slug,
        updated=feed.published or _utcnow(),
    )


def build_podcast_update(feed: ParsedFeed) -> PodcastUpdate:
    """Build the partial update for an existing podcast.

    Empty feed values leave the stored value untouched; ``updated`` is
    always refreshed.
    """
    itunes = feed.itunes or ItunesFeedExtension()
    candidates = {
        "categories": list(feed.categories),
        "link": feed.link,
        "description": feed.description,
        "subtitle": itunes.subtitle,
        "author": itunes.author,
        "image": itunes.image,
    }
    return PodcastUpdate(
        updated=feed.published or _utcnow(),
        **{name: value for name, value in candidates.items() if value},
    )


def build_episode(
    item: ParsedItem,
    podcast: Podcast,
    feed: ParsedFeed,
    slug: str,
) -> Episode:
    """Construct a new Episode row for an item carrying iTunes metadata."""
    if podcast.id is None:
        raise ValueError("Podcast ID is required")
    itunes = item.itunes
    if itunes is None:
        raise ValueError(f"Item {item.guid!r} has no iTunes metadata")

    enclosure = item.enclosures[0] if item.enclosures else FeedEnclosure()
    feed_itunes = feed.itunes or ItunesFeedExtension()

    return Episode(
        podcast_id=podcast.id,
        podcast_slug=podcast.slug,
        podcast_title=feed.title or podcast.title,
        podcast_image=feed_itunes.image or podcast.image,
        guid=item.guid,
        title=item.title,
        published=item.published or _utcnow(),
        duration=itunes.duration,
        summary=itunes.summary,
        subtitle=itunes.subtitle,
        description=item.description,
        image=itunes.image,
        content=item.content,
        enclosure_filesize=enclosure.length,
        enclosure_filetype=enclosure.type,
        enclosure_url=enclosure.url,
        slug=slug,
    )


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)
