"""Parsed feed value objects.

Produced by the feed fetcher from feedparser output and consumed by the
reconciler, so the reconciler never touches feedparser dictionaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class FeedOwner:
    name: str = ""
    email: str = ""


@dataclass(frozen=True, slots=True)
class FeedEnclosure:
    url: str = ""
    length: str = ""
    type: str = ""


@dataclass(frozen=True, slots=True)
class ItunesFeedExtension:
    """Channel-level iTunes metadata."""

    author: str = ""
    subtitle: str = ""
    image: str = ""
    owner: Optional[FeedOwner] = None


@dataclass(frozen=True, slots=True)
class ItunesItemExtension:
    """Item-level iTunes metadata. Items without it are not ingested."""

    duration: str = ""
    summary: str = ""
    subtitle: str = ""
    image: str = ""


@dataclass(frozen=True, slots=True)
class ParsedItem:
    guid: str
    title: str = ""
    published: Optional[datetime] = None
    description: str = ""
    content: str = ""
    enclosures: tuple[FeedEnclosure, ...] = ()
    itunes: Optional[ItunesItemExtension] = None


@dataclass(frozen=True, slots=True)
class ParsedFeed:
    """A fetched feed. ``self_link`` is the canonical dedup key and never empty."""

    url: str
    self_link: str
    title: str = ""
    link: str = ""
    description: str = ""
    categories: tuple[str, ...] = ()
    published: Optional[datetime] = None
    items: tuple[ParsedItem, ...] = field(default_factory=tuple)
    itunes: Optional[ItunesFeedExtension] = None
