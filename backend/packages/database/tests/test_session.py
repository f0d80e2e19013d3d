"""Tests for database session management."""

import pytest
from sqlalchemy import select

from lucid_database import (
    SqlResilienceStore,
    close_database,
    get_session_context,
    get_session_factory,
    init_database,
)
from lucid_database.models import FeedCatalog


@pytest.mark.asyncio
async def test_init_creates_tables_and_close_releases(tmp_path) -> None:
    factory = await init_database(f"sqlite+aiosqlite:///{tmp_path / 'lucid.db'}")
    try:
        assert get_session_factory() is factory

        async with get_session_context() as session:
            session.add(FeedCatalog(url="https://example.com/feed", name="Example"))
            await session.commit()

        [feed] = await SqlResilienceStore(factory).get_feed_catalog()
        assert feed.name == "Example"
        assert feed.consecutive_failures == 0
    finally:
        await close_database()

    with pytest.raises(RuntimeError):
        get_session_factory()


@pytest.mark.asyncio
async def test_session_context_rolls_back_on_error(tmp_path) -> None:
    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'lucid.db'}")
    try:
        with pytest.raises(ValueError):
            async with get_session_context() as session:
                session.add(FeedCatalog(url="https://example.com/feed"))
                await session.flush()
                raise ValueError("abort")

        async with get_session_context() as session:
            assert (await session.execute(select(FeedCatalog))).scalars().all() == []
    finally:
        await close_database()
