"""Pydantic models for podcast updates and ingestion results."""

from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel


class PodcastUpdate(SQLModel):
    """Partial update of a stored podcast's mutable fields.

    Only fields explicitly set are written; title, slug and feed URL are
    deliberately absent.
    """

    categories: Optional[list[str]] = None
    link: Optional[str] = None
    description: Optional[str] = None
    subtitle: Optional[str] = None
    author: Optional[str] = None
    image: Optional[str] = None
    updated: Optional[datetime] = None


class FeedReconcileResult(SQLModel):
    """Outcome of reconciling one fetched feed against the store."""

    feed_url: str
    podcast_slug: str
    podcast_created: bool = False
    podcast_updated: bool = False
    episodes_added: int = 0
    episodes_skipped: int = 0  # GUID already known
    episodes_filtered: int = 0  # no iTunes block


class IngestionResult(SQLModel):
    """Summary of one ingestion run."""

    feeds_total: int = 0
    feeds_processed: int = 0
    feeds_failed: int = 0
    podcasts_created: int = 0
    podcasts_updated: int = 0
    episodes_added: int = 0
    episodes_skipped: int = 0
    episodes_filtered: int = 0
    timed_out: bool = False
    errors: list[str] = []

    def record(self, feed_result: FeedReconcileResult) -> None:
        self.feeds_processed += 1
        self.podcasts_created += int(feed_result.podcast_created)
        self.podcasts_updated += int(feed_result.podcast_updated)
        self.episodes_added += feed_result.episodes_added
        self.episodes_skipped += feed_result.episodes_skipped
        self.episodes_filtered += feed_result.episodes_filtered

    def record_error(self, message: str) -> None:
        self.feeds_failed += 1
        self.errors.append(message)
