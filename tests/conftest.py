"""Pytest configuration and fixtures for the notification pipeline tests.

Every test gets a fresh in-memory SQLite database (aiosqlite, StaticPool so
all sessions share one connection) with the full schema created from the
ORM metadata. Workers and services receive the session factory directly,
exactly as they do in production.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from video_notifier.database import create_test_engine
from video_notifier.models import (
    FREE_PLAN,
    Base,
    Profile,
    ProfileYouTubeChannel,
    Subscription,
    SubscriptionStatus,
    utcnow,
)
from tests.support.fakes import CHANNEL_ID, FakeTranscriptApi, completion_response


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep deployment settings from the developer shell out of the tests."""
    for name in (
        "APP_ENV",
        "DISCORD_WEBHOOK_URL",
        "OPENAI_API_KEY",
        "RESEND_API_KEY",
        "SUBSCRIPTION_CHECK_ENABLED",
        "HUB_RENEWAL_ENABLED",
        "WORKERS_AUTOSTART",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest_asyncio.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created."""
    engine, _ = create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (expire_on_commit=False)."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct setup and assertions in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_subscriber(session_factory):
    """Create a profile, its channel memberships and (optionally) a subscription.

    Usage:
        profile_id = await make_subscriber(channels=[CHANNEL_ID], plan="pro")
    """

    async def _make(
        email: str | None = "viewer@example.com",
        channels: list[str] | None = None,
        plan: str | None = FREE_PLAN,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        usage_count: int = 0,
        period_limit: int = 50,
        end_date: datetime | None = None,
        subscribed_at: datetime | None = None,
    ) -> uuid.UUID:
        async with session_factory() as db:
            profile = Profile(email=email)
            db.add(profile)
            await db.flush()

            for channel_id in channels if channels is not None else [CHANNEL_ID]:
                db.add(
                    ProfileYouTubeChannel(
                        profile_id=profile.id,
                        youtube_channel_id=channel_id,
                        subscribed_at=subscribed_at,
                    )
                )

            if plan is not None:
                db.add(
                    Subscription(
                        profile_id=profile.id,
                        plan=plan,
                        status=status,
                        start_date=utcnow() - timedelta(days=29),
                        end_date=end_date,
                        usage_count=usage_count,
                        period_limit=period_limit,
                    )
                )

            await db.commit()
            return profile.id

    return _make


@pytest.fixture
def transcript_api() -> FakeTranscriptApi:
    return FakeTranscriptApi()


@pytest.fixture
def openai_client() -> MagicMock:
    """AsyncOpenAI double returning a valid JSON summary."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=completion_response(
            '{"briefSummary": "A short summary.", "keyPoints": ["First", "Second"]}'
        )
    )
    return client


@pytest.fixture
def hub_client() -> MagicMock:
    """HubClient double with async subscribe/unsubscribe."""
    hub = MagicMock()
    hub.subscribe = AsyncMock(return_value=None)
    hub.unsubscribe = AsyncMock(return_value=None)
    return hub
