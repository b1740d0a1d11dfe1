"""Durable notification queue backed by a Postgres table.

Messages live in queue_messages until a consumer deletes them. Consumption
is at-least-once:

    enqueue → pop (hidden for the visibility timeout, read_count + 1)
            → delete            (processed or dropped)
            → release(delay)    (transient failure, redelivered later)
            → dead_letter       (attempts exhausted, moved to queue_dead_letters)

A message that is popped and never deleted becomes visible again once its
visibility timeout expires, with read_count preserved. Exclusive claiming
across processes uses SELECT ... FOR UPDATE SKIP LOCKED (ignored on SQLite).

Usage:
    from video_notifier.queue import NotificationQueue

    queue = NotificationQueue(async_session_factory)
    msg_id = await queue.enqueue(event)
    message = await queue.pop()
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.config import get_queue_name, get_queue_visibility_timeout
from video_notifier.models import DeadLetterMessage, QueueMessage, utcnow
from video_notifier.schemas.video_event import VideoEvent
from video_notifier.utils.alerts import send_alert
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class QueuedMessage:
    """Snapshot of a popped message, detached from any session."""

    msg_id: int
    read_count: int
    enqueued_at: datetime
    payload: Any


class NotificationQueue:
    """Table queue with pop/delete semantics and native redelivery."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue_name: str | None = None,
        visibility_timeout: int | None = None,
    ):
        self.session_factory = session_factory
        self.queue_name = queue_name or get_queue_name()
        self.visibility_timeout = (
            visibility_timeout
            if visibility_timeout is not None
            else get_queue_visibility_timeout()
        )

    async def enqueue(self, event: VideoEvent | dict[str, Any]) -> int:
        """Store an event and return its msg_id.

        Args:
            event: VideoEvent, or a raw payload mapping (stored as-is).
        """
        payload = event.to_payload() if isinstance(event, VideoEvent) else event

        async with self.session_factory() as db:
            message = QueueMessage(queue_name=self.queue_name, payload=payload)
            db.add(message)
            await db.commit()
            msg_id = message.msg_id

        log.info("message_enqueued", queue=self.queue_name, msg_id=msg_id)
        return msg_id

    async def pop(self) -> QueuedMessage | None:
        """Claim the oldest visible message, or return None if the queue is empty.

        The claimed message is hidden for visibility_timeout seconds and its
        read_count is incremented before it is returned.
        """
        now = utcnow()

        async with self.session_factory() as db:
            stmt = (
                select(QueueMessage)
                .where(
                    QueueMessage.queue_name == self.queue_name,
                    QueueMessage.visible_at <= now,
                )
                .order_by(QueueMessage.msg_id)
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            message = (await db.execute(stmt)).scalar_one_or_none()
            if message is None:
                return None

            message.read_count += 1
            message.visible_at = now + timedelta(seconds=self.visibility_timeout)
            await db.commit()

            return QueuedMessage(
                msg_id=message.msg_id,
                read_count=message.read_count,
                enqueued_at=message.enqueued_at,
                payload=message.payload,
            )

    async def delete(self, msg_id: int) -> bool:
        """Remove a message permanently. Returns False if it was already gone."""
        async with self.session_factory() as db:
            result = await db.execute(
                delete(QueueMessage).where(QueueMessage.msg_id == msg_id)
            )
            await db.commit()

        deleted = result.rowcount > 0
        log.debug("message_deleted", msg_id=msg_id, deleted=deleted)
        return deleted

    async def release(self, msg_id: int, delay: float) -> None:
        """Make a claimed message visible again after delay seconds."""
        visible_at = utcnow() + timedelta(seconds=max(0.0, delay))

        async with self.session_factory() as db:
            await db.execute(
                update(QueueMessage)
                .where(QueueMessage.msg_id == msg_id)
                .values(visible_at=visible_at)
            )
            await db.commit()

        log.info("message_released", msg_id=msg_id, delay_seconds=delay)

    async def dead_letter(self, message: QueuedMessage, reason: str) -> None:
        """Move a message to queue_dead_letters and raise an operator alert."""
        async with self.session_factory() as db:
            db.add(
                DeadLetterMessage(
                    original_msg_id=message.msg_id,
                    queue_name=self.queue_name,
                    read_count=message.read_count,
                    payload=message.payload,
                    reason=reason[:2000],
                )
            )
            await db.execute(
                delete(QueueMessage).where(QueueMessage.msg_id == message.msg_id)
            )
            await db.commit()

        log.error(
            "message_dead_lettered",
            msg_id=message.msg_id,
            read_count=message.read_count,
            reason=reason[:500],
        )

        video_id = message.payload.get("videoId") if isinstance(message.payload, dict) else None
        await send_alert(
            level="CRITICAL",
            message=f"Notification message {message.msg_id} dead-lettered: {reason}",
            details={
                "queue": self.queue_name,
                "msg_id": str(message.msg_id),
                "read_count": str(message.read_count),
                "video_id": str(video_id),
            },
        )

    async def depth(self) -> int:
        """Number of stored messages, visible or not."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count())
                .select_from(QueueMessage)
                .where(QueueMessage.queue_name == self.queue_name)
            )
            return result.scalar_one()
