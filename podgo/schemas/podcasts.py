"""Podcasts table: one row per distinct canonical feed URL."""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class Podcast(SQLModel, table=True):  # type: ignore[call-arg]
    """A podcast discovered from a syndication feed.

    ``title``, ``slug`` and ``feed`` are fixed at creation; the descriptive
    fields and ``updated`` are refreshed on every ingestion run.
    """

    __tablename__ = "podcasts"
    __table_args__ = (
        UniqueConstraint("feed", name="uq_podcasts_feed"),
        UniqueConstraint("slug", name="uq_podcasts_slug"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(default="")
    categories: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    link: str = Field(default="")
    description: str = Field(default="")
    subtitle: str = Field(default="")
    owner_name: str = Field(default="")
    owner_email: str = Field(default="")
    author: str = Field(default="")
    image: str = Field(default="")
    feed: str = Field(index=True)  # canonical feed URL (dedup key)
    slug: str = Field(index=True)
    updated: datetime
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC).replace(tzinfo=None)
    )
