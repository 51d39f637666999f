"""Shared pytest fixtures."""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv

from podgo.services.store import PodcastStore
from podgo.utils.db_async import create_engine_from_url

load_dotenv()


@pytest_asyncio.fixture()
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[PodcastStore, None]:
    """Provide a PodcastStore on a throwaway SQLite file with tables created."""
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'podgo.db'}")
    store = PodcastStore(engine)
    await store.create_indexes()
    try:
        yield store
    finally:
        await engine.dispose()


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Ensure HTTPX uses asyncio backend during tests."""
    return "asyncio"
