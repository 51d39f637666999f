"""Unit tests for the run-scoped dedup index."""

import asyncio

import pytest

from podgo.services.dedup_index import DedupIndex, PodcastClaim
from tests.feed_helpers import FakeStore


@pytest.mark.asyncio
class TestDedupIndex:
    """Tests for podcast claims and episode key caching."""

    async def test_load_from_store(self) -> None:
        """Stored feed URLs and slugs seed the index."""
        store = FakeStore()
        store.add_podcast(title="News", feed="https://a.example/feed.xml", slug="news")
        index = await DedupIndex.load(store)
        assert index.feed_urls == {"https://a.example/feed.xml"}
        assert index.podcast_slugs == {"news"}

    async def test_claim_new_feed_reserves_keys(self) -> None:
        """A first-seen feed URL is new and reserves its slug."""
        index = DedupIndex(set(), set())
        claim = await index.claim_podcast("https://a.example/feed.xml", "My Show")
        assert claim == PodcastClaim("https://a.example/feed.xml", "my-show", True)
        assert "https://a.example/feed.xml" in index.feed_urls
        assert "my-show" in index.podcast_slugs

    async def test_claim_known_feed_is_update(self) -> None:
        """A known feed URL is reported as existing and reserves nothing."""
        index = DedupIndex({"https://a.example/feed.xml"}, {"my-show"})
        claim = await index.claim_podcast("https://a.example/feed.xml", "My Show")
        assert claim.is_new is False
        assert index.podcast_slugs == {"my-show"}

    async def test_same_title_different_feed_gets_suffix(self) -> None:
        """Title collisions across feeds resolve with the x suffix."""
        index = DedupIndex({"https://a.example/feed.xml"}, {"my-show"})
        claim = await index.claim_podcast("https://b.example/feed.xml", "My Show")
        assert claim.is_new is True
        assert claim.slug == "myshowx"

    async def test_concurrent_claims_single_winner(self) -> None:
        """Only one of many concurrent claims on one URL is new."""
        index = DedupIndex(set(), set())
        claims = await asyncio.gather(
            *(index.claim_podcast("https://a.example/feed.xml", "My Show") for _ in range(10))
        )
        assert sum(claim.is_new for claim in claims) == 1
        assert index.podcast_slugs == {"my-show"}

    async def test_concurrent_distinct_feeds_get_distinct_slugs(self) -> None:
        """Concurrent claims for different feeds with one title never share a slug."""
        index = DedupIndex(set(), set())
        claims = await asyncio.gather(
            *(index.claim_podcast(f"https://{n}.example/feed.xml", "News") for n in range(4))
        )
        assert sorted(claim.slug for claim in claims) == ["news", "newsx", "newsxx", "newsxxx"]

    async def test_release_undoes_new_claim(self) -> None:
        """Releasing a new claim frees both the URL and the slug."""
        index = DedupIndex(set(), set())
        claim = await index.claim_podcast("https://a.example/feed.xml", "My Show")
        await index.release_podcast(claim)
        assert index.feed_urls == set()
        assert index.podcast_slugs == set()

    async def test_release_ignores_existing_claim(self) -> None:
        """Releasing an update claim leaves the index untouched."""
        index = DedupIndex({"https://a.example/feed.xml"}, {"my-show"})
        claim = await index.claim_podcast("https://a.example/feed.xml", "My Show")
        await index.release_podcast(claim)
        assert index.feed_urls == {"https://a.example/feed.xml"}
        assert index.podcast_slugs == {"my-show"}

    async def test_episode_keys_loaded_once(self) -> None:
        """Episode keys are loaded lazily and cached per podcast."""
        store = FakeStore()
        podcast = store.add_podcast(title="News", feed="https://a.example/feed.xml", slug="news")
        store.add_episode(podcast, "g1", "episode-one")
        index = DedupIndex(set(), set())

        keys = await index.episode_keys("news", store)
        again = await index.episode_keys("news", store)

        assert keys is again
        assert keys.guids == {"g1"}
        assert keys.slugs == {"episode-one"}
        assert store.calls["load_episode_keys"] == 1

    async def test_keyed_locks_are_stable(self) -> None:
        """The same key always maps to the same lock; different keys do not."""
        index = DedupIndex(set(), set())
        assert index.feed_lock("a") is index.feed_lock("a")
        assert index.feed_lock("a") is not index.feed_lock("b")
        assert index.episode_lock("news") is index.episode_lock("news")
