"""Persistent store for podcasts and episodes.

Thin async wrapper over the two tables. Every operation runs in its own
short session and transaction, so concurrent ingestion tasks never share an
``AsyncSession`` and each insert/update is atomic on its own.
"""

import logging
from collections.abc import Sequence
from typing import Any, Optional

from sqlalchemy import select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from podgo.models.errors import StoreUnavailableError
from podgo.models.podcasts import PodcastUpdate
from podgo.schemas.episodes import Episode
from podgo.schemas.podcasts import Podcast
from podgo.utils.db_async import create_session_factory, init_db

logger = logging.getLogger(__name__)

_EPISODE_CONFLICT_COLUMNS = ["podcast_slug", "guid"]


class PodcastStore:
    """Store collaborator used by the ingestion pipeline.

    Example:
        store = PodcastStore(engine)
        await store.ping()
        feed_urls, slugs = await store.load_podcast_keys()
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    async def ping(self) -> None:
        """Verify the store is reachable.

        Raises:
            StoreUnavailableError: If a trivial query cannot be executed
        """
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            raise StoreUnavailableError(f"Cannot reach store: {exc}") from exc

    async def create_indexes(self) -> None:
        """Create both tables with their unique and secondary indexes."""
        await init_db(self.engine)

    async def load_podcast_keys(self) -> tuple[set[str], set[str]]:
        """Return (feed URLs, slugs) of every stored podcast."""
        async with self._session_factory() as session:
            result = await session.execute(select(Podcast.feed, Podcast.slug))  # type: ignore[call-overload]
            rows = result.all()
        return {row[0] for row in rows}, {row[1] for row in rows}

    async def get_podcast_by_feed(self, feed_url: str) -> Optional[Podcast]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Podcast).where(Podcast.feed == feed_url)  # type: ignore[arg-type]
            )
            return result.scalars().first()

    async def insert_podcast(self, podcast: Podcast) -> Podcast:
        """Insert a new podcast and return it with its store-assigned id."""
        async with self._session_factory() as session:
            async with session.begin():
                session.add(podcast)
        return podcast

    async def update_podcast(self, podcast_id: int, changes: PodcastUpdate) -> bool:
        """Apply the explicitly set fields of ``changes`` to one podcast.

        Returns:
            True if a row was updated
        """
        values: dict[str, Any] = changes.model_dump(exclude_unset=True)
        if not values:
            return False

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Podcast)
                    .where(Podcast.id == podcast_id)  # type: ignore[arg-type]
                    .values(**values)
                )
        return bool(result.rowcount)

    async def load_episode_keys(self, podcast_slug: str) -> tuple[set[str], set[str]]:
        """Return (GUIDs, episode slugs) already stored for one podcast."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Episode.guid, Episode.slug).where(  # type: ignore[call-overload]
                    Episode.podcast_slug == podcast_slug,
                )
            )
            rows = result.all()
        return {row[0] for row in rows}, {row[1] for row in rows}

    async def insert_episodes(self, episodes: Sequence[Episode]) -> int:
        """Bulk insert episodes, ignoring (podcast slug, GUID) conflicts.

        Returns:
            Number of rows actually inserted
        """
        if not episodes:
            return 0

        rows = [episode.model_dump(exclude={"id"}) for episode in episodes]
        insert = pg_insert if self.engine.dialect.name == "postgresql" else sqlite_insert

        stmt = (
            insert(Episode)
            .values(rows)
            .on_conflict_do_nothing(index_elements=_EPISODE_CONFLICT_COLUMNS)
            .returning(Episode.__table__.c.id)  # type: ignore[attr-defined]
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                inserted = len(list(result.scalars().all()))

        if inserted < len(rows):
            logger.warning(
                f"  {len(rows) - inserted} episode(s) already present in store, not inserted"
            )
        return inserted
