"""Run-scoped deduplication state shared by concurrent ingestion tasks.

The index is the single source of truth for "does this entity already
exist" during one run. It is loaded from the store at the start of the run
and mutated in place as new podcasts and episodes are accepted, so that
duplicates inside the same run are caught as well.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from podgo.utils.slug import unique_slug

logger = logging.getLogger(__name__)


class KeyLoader(Protocol):
    async def load_podcast_keys(self) -> tuple[set[str], set[str]]: ...

    async def load_episode_keys(self, podcast_slug: str) -> tuple[set[str], set[str]]: ...


@dataclass(frozen=True, slots=True)
class PodcastClaim:
    """Result of checking a feed against the podcast indices.

    ``slug`` is the collision-free slug for the feed title; it is only
    reserved when ``is_new`` is True.
    """

    feed_url: str
    slug: str
    is_new: bool


@dataclass
class EpisodeKeys:
    """Known GUIDs and episode slugs of one podcast."""

    guids: set[str] = field(default_factory=set)
    slugs: set[str] = field(default_factory=set)


class DedupIndex:
    """Feed URL, podcast slug and per-podcast episode indices for one run.

    Check-and-claim on the podcast indices is serialised by a single lock.
    Work on one feed URL is serialised through :meth:`feed_lock`, and
    episode reconciliation per podcast through :meth:`episode_lock`;
    callers must hold the latter while reading or mutating the podcast's
    :class:`EpisodeKeys`.
    """

    def __init__(self, feed_urls: set[str], podcast_slugs: set[str]):
        self.feed_urls = feed_urls
        self.podcast_slugs = podcast_slugs
        self._episode_keys: dict[str, EpisodeKeys] = {}
        self._podcast_lock = asyncio.Lock()
        self._feed_locks: dict[str, asyncio.Lock] = {}
        self._episode_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    async def load(cls, store: KeyLoader) -> "DedupIndex":
        feed_urls, podcast_slugs = await store.load_podcast_keys()
        logger.info(
            f"Dedup index loaded: {len(feed_urls)} feed URL(s), {len(podcast_slugs)} slug(s)"
        )
        return cls(feed_urls, podcast_slugs)

    async def claim_podcast(self, feed_url: str, title: str) -> PodcastClaim:
        """Decide insert vs. update for a feed and reserve its keys if new.

        Exactly one concurrent caller wins a given feed URL; every other
        caller observes it as already existing.
        """
        async with self._podcast_lock:
            slug = unique_slug(title, self.podcast_slugs)
            if feed_url in self.feed_urls:
                return PodcastClaim(feed_url=feed_url, slug=slug, is_new=False)
            self.feed_urls.add(feed_url)
            self.podcast_slugs.add(slug)
            return PodcastClaim(feed_url=feed_url, slug=slug, is_new=True)

    async def release_podcast(self, claim: PodcastClaim) -> None:
        """Undo a claim whose insert did not reach the store."""
        if not claim.is_new:
            return
        async with self._podcast_lock:
            self.feed_urls.discard(claim.feed_url)
            self.podcast_slugs.discard(claim.slug)

    def feed_lock(self, feed_url: str) -> asyncio.Lock:
        """Lock held from claim until the podcast row is inserted or updated.

        A second task for the same feed URL waits here instead of looking up
        a podcast whose insert has not committed yet.
        """
        return _keyed_lock(self._feed_locks, feed_url)

    def episode_lock(self, podcast_slug: str) -> asyncio.Lock:
        return _keyed_lock(self._episode_locks, podcast_slug)

    async def episode_keys(self, podcast_slug: str, store: KeyLoader) -> EpisodeKeys:
        """Return the cached episode keys of a podcast, loading them on first use."""
        keys = self._episode_keys.get(podcast_slug)
        if keys is None:
            guids, slugs = await store.load_episode_keys(podcast_slug)
            keys = self._episode_keys[podcast_slug] = EpisodeKeys(guids=guids, slugs=slugs)
        return keys


def _keyed_lock(locks: dict[str, asyncio.Lock], key: str) -> asyncio.Lock:
    lock = locks.get(key)
    if lock is None:
        lock = locks[key] = asyncio.Lock()
    return lock
