"""Async database engine and session management.

This module provides the async SQLAlchemy 2.0 engine configuration and
session factory.

Workers receive the session factory explicitly and follow the short
transaction pattern: open a session, read or write, close it, then make
external calls (captions, summaries, email) with no connection held.

Usage:
    from video_notifier.database import async_session_factory

    async with async_session_factory() as db:
        result = await db.execute(select(EmailNotification))
"""

import os
from typing import Any

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from video_notifier.config import get_database_url


# DATABASE_URL may be absent during import in tests
_database_url = os.getenv("DATABASE_URL")

if _database_url:
    engine: AsyncEngine | None = create_async_engine(
        get_database_url(),
        pool_size=10,
        max_overflow=5,
        pool_pre_ping=True,
        echo=os.getenv("DATABASE_ECHO", "").lower() == "true",
    )
else:
    engine = None


async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # CRITICAL: rows are read after the session closes
    )
    if engine
    else None
)


def require_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the configured session factory or fail loudly.

    Raises:
        RuntimeError: If DATABASE_URL was not set at import time.
    """
    if async_session_factory is None:
        raise RuntimeError("Database not configured. Set DATABASE_URL environment variable.")
    return async_session_factory


def create_test_engine(
    database_url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine for testing.

    Args:
        database_url: Test database URL (defaults to in-memory SQLite).

    Returns:
        Tuple of (engine, async_session_factory) for testing.
    """
    # One shared connection so every session sees the same in-memory database
    test_engine = create_async_engine(database_url, echo=False, poolclass=StaticPool)
    test_session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return test_engine, test_session_factory


async def dispose_engine() -> None:
    """Close pooled connections on process shutdown."""
    if engine is not None:
        await engine.dispose()


def insert_ignoring_conflicts(session: AsyncSession, table: Any, *conflict_columns: str) -> Any:
    """Build INSERT ... ON CONFLICT DO NOTHING for the session's dialect.

    Postgres in production, SQLite in tests; both support the clause.
    """
    if session.get_bind().dialect.name == "postgresql":
        stmt = postgresql_insert(table)
    else:
        stmt = sqlite_insert(table)
    return stmt.on_conflict_do_nothing(index_elements=list(conflict_columns) or None)
