"""AI content cache keyed by video id.

A summary is computed at most once per video in the common case and reused
by every fan-out of that video (including queue redeliveries). The first
successful write is authoritative: put() inserts with ON CONFLICT DO NOTHING
and always returns the row that is actually stored.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.database import insert_ignoring_conflicts
from video_notifier.models import AIContent, utcnow
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)


class AIContentCache:
    """Read/write access to the ai_content table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, video_id: str) -> AIContent | None:
        async with self.session_factory() as db:
            return await db.get(AIContent, video_id)

    async def put(self, video_id: str, content: dict[str, Any], model: str) -> AIContent:
        """Store a summary unless one already exists.

        Args:
            video_id: YouTube video id.
            content: {"briefSummary": str, "keyPoints": [str, ...]}
            model: Model that produced the summary.

        Returns:
            The authoritative stored row. When another writer won the race its
            content is returned and ours is discarded.
        """
        async with self.session_factory() as db:
            stmt = insert_ignoring_conflicts(db, AIContent.__table__, "video_id").values(
                video_id=video_id,
                content=content,
                model=model,
                created_at=utcnow(),
            )
            result = await db.execute(stmt)
            await db.commit()
            inserted = result.rowcount == 1

            stored = (
                await db.execute(select(AIContent).where(AIContent.video_id == video_id))
            ).scalar_one()

        if inserted:
            log.info("ai_content_stored", video_id=video_id, model=model)
        elif stored.content != content:
            log.warning(
                "ai_content_conflict_kept_existing",
                video_id=video_id,
                existing_model=stored.model,
                discarded_model=model,
            )
        return stored
