"""Factories and an in-memory store shared by the unit tests."""

import asyncio
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, OperationalError

from podgo.models.errors import FetchError
from podgo.models.feeds import (
    FeedEnclosure,
    FeedOwner,
    ItunesFeedExtension,
    ItunesItemExtension,
    ParsedFeed,
    ParsedItem,
)
from podgo.models.podcasts import PodcastUpdate
from podgo.schemas.episodes import Episode
from podgo.schemas.podcasts import Podcast

FEED_URL = "https://a.example/feed.xml"


def make_item(
    guid: str,
    title: Optional[str] = None,
    *,
    itunes: bool = True,
    enclosure: bool = True,
    published: Optional[datetime] = datetime(2025, 1, 6, 10, 0, 0),
) -> ParsedItem:
    return ParsedItem(
        guid=guid,
        title=title if title is not None else f"Episode {guid}",
        published=published,
        description=f"Description of {guid}",
        content=f"<p>{guid}</p>",
        enclosures=(
            (FeedEnclosure(url=f"https://a.example/{guid}.mp3", length="1234", type="audio/mpeg"),)
            if enclosure
            else ()
        ),
        itunes=(
            ItunesItemExtension(
                duration="12:34",
                summary=f"Summary of {guid}",
                subtitle=f"Subtitle of {guid}",
                image=f"https://a.example/{guid}.jpg",
            )
            if itunes
            else None
        ),
    )


def make_feed(
    url: str = FEED_URL,
    title: str = "My Show",
    items: Sequence[ParsedItem] = (),
    *,
    self_link: Optional[str] = None,
    itunes: bool = True,
    published: Optional[datetime] = datetime(2025, 1, 7, 8, 30, 0),
    **overrides: Any,
) -> ParsedFeed:
    fields: dict[str, Any] = dict(
        url=url,
        self_link=self_link or url,
        title=title,
        link="https://a.example/",
        description="About the show",
        categories=("News", "Technology"),
        published=published,
        items=tuple(items),
        itunes=(
            ItunesFeedExtension(
                author="Jane Host",
                subtitle="A show about things",
                image="https://a.example/cover.jpg",
                owner=FeedOwner(name="Jane Host", email="jane@a.example"),
            )
            if itunes
            else None
        ),
    )
    fields.update(overrides)
    return ParsedFeed(**fields)


def _store_failure(operation: str) -> OperationalError:
    return OperationalError(operation, {}, Exception("connection was closed"))


class FakeStore:
    """In-memory stand-in for PodcastStore with the same unique keys.

    Every operation yields to the event loop first so concurrent tasks
    interleave the way they would against a real database. Operations named
    in ``fail_on`` raise ``OperationalError``.
    """

    def __init__(self, fail_on: Sequence[str] = ()):
        self.podcasts: dict[int, Podcast] = {}
        self.episodes: list[Episode] = []
        self.fail_on = set(fail_on)
        self.calls: dict[str, int] = {}
        self._next_podcast_id = 1

    async def _enter(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        await asyncio.sleep(0)
        if operation in self.fail_on:
            raise _store_failure(operation)

    def add_podcast(self, **fields: Any) -> Podcast:
        """Seed a stored podcast synchronously."""
        fields.setdefault("updated", datetime(2024, 1, 1))
        podcast = Podcast(id=self._next_podcast_id, **fields)
        self._next_podcast_id += 1
        self.podcasts[podcast.id] = podcast  # type: ignore[index]
        return podcast

    def add_episode(self, podcast: Podcast, guid: str, slug: str = "") -> Episode:
        episode = Episode(
            podcast_id=podcast.id,  # type: ignore[arg-type]
            podcast_slug=podcast.slug,
            guid=guid,
            slug=slug or guid,
            published=datetime(2024, 1, 1),
        )
        self.episodes.append(episode)
        return episode

    def episodes_for(self, podcast_slug: str) -> list[Episode]:
        return [e for e in self.episodes if e.podcast_slug == podcast_slug]

    async def ping(self) -> None:
        await self._enter("ping")

    async def load_podcast_keys(self) -> tuple[set[str], set[str]]:
        await self._enter("load_podcast_keys")
        return (
            {p.feed for p in self.podcasts.values()},
            {p.slug for p in self.podcasts.values()},
        )

    async def get_podcast_by_feed(self, feed_url: str) -> Optional[Podcast]:
        await self._enter("get_podcast_by_feed")
        for podcast in self.podcasts.values():
            if podcast.feed == feed_url:
                return podcast
        return None

    async def insert_podcast(self, podcast: Podcast) -> Podcast:
        await self._enter("insert_podcast")
        for existing in self.podcasts.values():
            if existing.feed == podcast.feed or existing.slug == podcast.slug:
                raise IntegrityError("insert podcast", {}, Exception("duplicate key"))
        podcast.id = self._next_podcast_id
        self._next_podcast_id += 1
        self.podcasts[podcast.id] = podcast
        return podcast

    async def update_podcast(self, podcast_id: int, changes: PodcastUpdate) -> bool:
        await self._enter("update_podcast")
        podcast = self.podcasts.get(podcast_id)
        if podcast is None:
            return False
        for name, value in changes.model_dump(exclude_unset=True).items():
            setattr(podcast, name, value)
        return True

    async def load_episode_keys(self, podcast_slug: str) -> tuple[set[str], set[str]]:
        await self._enter("load_episode_keys")
        episodes = self.episodes_for(podcast_slug)
        return {e.guid for e in episodes}, {e.slug for e in episodes}

    async def insert_episodes(self, episodes: Sequence[Episode]) -> int:
        await self._enter("insert_episodes")
        keys = {(e.podcast_slug, e.guid) for e in self.episodes}
        inserted = 0
        for episode in episodes:
            if (episode.podcast_slug, episode.guid) in keys:
                continue
            keys.add((episode.podcast_slug, episode.guid))
            self.episodes.append(episode)
            inserted += 1
        return inserted


def make_fetcher(
    feeds: dict[str, Any],
    delays: Optional[dict[str, float]] = None,
    events: Optional[list[tuple[str, str]]] = None,
):
    """Build a fake fetcher serving ``feeds`` (ParsedFeed or exception per URL).

    ``events`` receives ("start", url) and ("end", url) tuples; the fetcher
    also tracks the maximum number of concurrent calls in ``fetcher.max_in_flight``.
    """
    delays = delays or {}

    async def fetcher(url: str, *, timeout: float) -> ParsedFeed:
        fetcher.in_flight += 1  # type: ignore[attr-defined]
        fetcher.max_in_flight = max(fetcher.max_in_flight, fetcher.in_flight)  # type: ignore[attr-defined]
        if events is not None:
            events.append(("start", url))
        try:
            await asyncio.sleep(delays.get(url, 0))
            value = feeds[url]
            if isinstance(value, BaseException):
                raise value
            return value
        finally:
            fetcher.in_flight -= 1  # type: ignore[attr-defined]
            if events is not None:
                events.append(("end", url))

    fetcher.in_flight = 0  # type: ignore[attr-defined]
    fetcher.max_in_flight = 0  # type: ignore[attr-defined]
    return fetcher


def fetch_error(url: str, cause: str = "timed out after 10s") -> FetchError:
    return FetchError(url, cause)


RSS_WITH_ITUNES = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>My Show</title>
    <link>https://a.example/</link>
    <description>About the show</description>
    <atom:link href="https://a.example/canonical.xml" rel="self" type="application/rss+xml"/>
    <pubDate>Tue, 07 Jan 2025 08:30:00 GMT</pubDate>
    <category>News</category>
    <itunes:author>Jane Host</itunes:author>
    <itunes:image href="https://a.example/cover.jpg"/>
    <itunes:owner>
      <itunes:name>Jane Host</itunes:name>
      <itunes:email>jane@a.example</itunes:email>
    </itunes:owner>
    <item>
      <title>Episode One</title>
      <guid isPermaLink="false">g1</guid>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
      <description>First episode</description>
      <enclosure url="https://a.example/1.mp3" length="1234" type="audio/mpeg"/>
      <itunes:duration>12:34</itunes:duration>
    </item>
    <item>
      <title>Episode Two</title>
      <guid isPermaLink="false">g2</guid>
      <description>Second episode</description>
      <itunes:duration>45:00</itunes:duration>
    </item>
    <item>
      <title>Plain Item</title>
      <guid isPermaLink="false">g3</guid>
      <description>No iTunes metadata here</description>
    </item>
  </channel>
</rss>
"""


RSS_ITUNES_TEXT_ONLY = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Text Show</title>
    <link>https://t.example/</link>
    <description>Channel description</description>
    <itunes:author>Sam Host</itunes:author>
    <item>
      <title>Summary Only</title>
      <guid isPermaLink="false">s1</guid>
      <itunes:summary>Only summary</itunes:summary>
    </item>
    <item>
      <title>Subtitle Only</title>
      <guid isPermaLink="false">s2</guid>
      <itunes:subtitle>Only subtitle</itunes:subtitle>
    </item>
    <item>
      <title>Author Only</title>
      <guid isPermaLink="false">s3</guid>
      <itunes:author>Guest Host</itunes:author>
    </item>
    <item>
      <title>Description And Duration</title>
      <guid isPermaLink="false">s4</guid>
      <description>Plain rss description</description>
      <itunes:duration>1:00</itunes:duration>
    </item>
    <item>
      <title>Description Only</title>
      <guid isPermaLink="false">s5</guid>
      <description>Plain rss description</description>
    </item>
  </channel>
</rss>
"""


RSS_PLAIN = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Plain Feed</title>
    <link>https://b.example/</link>
    <description>No extensions</description>
    <item>
      <title>Only Item</title>
      <guid isPermaLink="false">p1</guid>
    </item>
  </channel>
</rss>
"""
