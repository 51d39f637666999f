"""Episodes table: immutable once inserted."""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class Episode(SQLModel, table=True):  # type: ignore[call-arg]
    """A podcast episode ingested from a feed item.

    Podcast slug, title and image are denormalized for listing pages.
    The episode slug is unique only within its podcast.
    """

    __tablename__ = "episodes"
    __table_args__ = (
        UniqueConstraint("podcast_slug", "guid", name="uq_episodes_podcast_guid"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    podcast_id: int = Field(foreign_key="podcasts.id", index=True)
    podcast_slug: str = Field(index=True)
    podcast_title: str = Field(default="")
    podcast_image: str = Field(default="")

    guid: str  # feed-supplied id, unique per podcast
    title: str = Field(default="")
    published: datetime
    duration: str = Field(default="")
    summary: str = Field(default="")
    subtitle: str = Field(default="")
    description: str = Field(default="")
    image: str = Field(default="")
    content: str = Field(default="")

    # First <enclosure> of the item
    enclosure_filesize: str = Field(default="")
    enclosure_filetype: str = Field(default="")
    enclosure_url: str = Field(default="")

    slug: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC).replace(tzinfo=None)
    )
