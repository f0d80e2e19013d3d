"""
Database session management.

Creates the async engine and session factory and exposes helpers for
obtaining sessions.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_database(
    database_url: str, *, echo: bool = False
) -> async_sessionmaker[AsyncSession]:
    """
    Initialize the engine, create missing tables and return the session factory.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///./lucid.db``.
        echo: Log emitted SQL.
    """
    global _engine, _session_factory

    _engine = create_async_engine(database_url, echo=echo)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def close_database() -> None:
    """Dispose of the engine created by ``init_database``."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_factory


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session context manager that rolls back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
