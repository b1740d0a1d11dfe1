"""Queue worker: fans one new-video event out to per-subscriber ledger rows.

Each iteration pops at most one message and runs it through:

    1. channel      no channelId                     → drop
    2. membership   nobody follows the channel       → drop + hub unsubscribe
    3. parse        malformed payload                → drop
    4. eligibility  no follower's plan allows email  → acknowledge
    5. transcript   no captions                      → drop
    6. summary      ai_content cache, else summarize → cache put
    7. fan-out set  eligible followers − already notified
                    empty                            → acknowledge
    8. persist      one pending email_notifications row per new subscriber
    9. acknowledge  delete the message

"Drop" and "acknowledge" both delete the message. Any exception in steps 2-8
leaves it in the queue: it is released with exponential backoff and, once
read_count reaches the attempt cap, moved to the dead-letter table.

Replaying a message is harmless: the ledger's (profile_id, video_id) unique
constraint plus the "already notified" filter make fan-out exactly-once in
effect, and a cached summary is never recomputed.
"""

import asyncio
import uuid
from collections.abc import Sequence
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.clients.captions import CaptionFetcher
from video_notifier.clients.hub import HubClient
from video_notifier.clients.summarizer import Summarizer
from video_notifier.config import (
    get_external_call_timeout,
    get_queue_max_attempts,
    get_queue_poll_interval,
    get_retry_base_delay,
    get_retry_max_delay,
)
from video_notifier.database import insert_ignoring_conflicts
from video_notifier.exceptions import HubError
from video_notifier.models import (
    EmailNotification,
    NotificationStatus,
    ProfileYouTubeChannel,
    utcnow,
)
from video_notifier.queue import NotificationQueue, QueuedMessage
from video_notifier.schemas.video_event import VideoEvent
from video_notifier.services.ai_content import AIContentCache
from video_notifier.services.email_template import UPGRADE_CTA_TEXT, render_email_html
from video_notifier.services.usage import UsageAccounting
from video_notifier.utils.logging import get_logger
from video_notifier.workers.base import PollingWorker

log = get_logger(__name__)


class Outcome(str, Enum):
    """Terminal result of processing one message."""

    MALFORMED = "malformed"
    ORPHANED = "orphaned"
    NO_TRANSCRIPT = "no_transcript"
    NO_NEW_SUBSCRIBERS = "no_new_subscribers"
    FANNED_OUT = "fanned_out"
    RELEASED = "released"
    DEAD_LETTERED = "dead_lettered"


def retry_delay(read_count: int, base: float, maximum: float) -> float:
    """Exponential backoff for the n-th failed delivery (read_count >= 1)."""
    return min(base * 2 ** max(0, read_count - 1), maximum)


def parse_event(payload: Any) -> VideoEvent | None:
    """Validate a queue payload; None means the message can never be processed."""
    if not isinstance(payload, dict):
        return None
    try:
        return VideoEvent.model_validate(payload)
    except ValidationError:
        return None


def event_channel_id(payload: Any) -> str | None:
    """Channel id of a queue payload, or None if it has none to act on."""
    if not isinstance(payload, dict):
        return None
    channel_id = payload.get("channelId", payload.get("channel_id"))
    if not isinstance(channel_id, str) or not channel_id.strip():
        return None
    return channel_id


class QueueWorker(PollingWorker):
    """Fan-out engine for the notification queue."""

    name = "queue"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: NotificationQueue,
        captions: CaptionFetcher,
        summarizer: Summarizer,
        ai_content: AIContentCache,
        usage: UsageAccounting,
        hub: HubClient,
        interval: float | None = None,
        max_attempts: int | None = None,
        retry_base_delay: float | None = None,
        retry_max_delay: float | None = None,
        call_timeout: float | None = None,
    ):
        super().__init__(interval if interval is not None else get_queue_poll_interval())
        self.session_factory = session_factory
        self.queue = queue
        self.captions = captions
        self.summarizer = summarizer
        self.ai_content = ai_content
        self.usage = usage
        self.hub = hub
        self.max_attempts = max_attempts or get_queue_max_attempts()
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else get_retry_base_delay()
        )
        self.retry_max_delay = (
            retry_max_delay if retry_max_delay is not None else get_retry_max_delay()
        )
        self.call_timeout = call_timeout if call_timeout is not None else get_external_call_timeout()

    async def run_once(self) -> Outcome | None:
        """Pop and process at most one message. Returns None when the queue is empty."""
        message = await self.queue.pop()
        if message is None:
            return None
        return await self.process(message)

    async def process(self, message: QueuedMessage) -> Outcome:
        bound_log = log.bind(msg_id=message.msg_id, read_count=message.read_count)

        channel_id = event_channel_id(message.payload)
        if channel_id is None:
            await self.queue.delete(message.msg_id)
            bound_log.warning("message_dropped", reason=Outcome.MALFORMED.value)
            return Outcome.MALFORMED

        bound_log = bound_log.bind(channel_id=channel_id)

        try:
            outcome = await self._fan_out(message, channel_id)
        except Exception as e:
            # Message stays in the queue; attempts are counted by read_count
            bound_log.error(
                "message_processing_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return await self._handle_failure(message, f"{type(e).__name__}: {e}")

        bound_log.info("message_processed", outcome=outcome.value)
        return outcome

    async def _fan_out(self, message: QueuedMessage, channel_id: str) -> Outcome:
        subscribers = await self._get_channel_subscribers(channel_id)
        if not subscribers:
            await self.queue.delete(message.msg_id)
            await self._unsubscribe_orphan(channel_id)
            return Outcome.ORPHANED

        event = parse_event(message.payload)
        if event is None:
            await self.queue.delete(message.msg_id)
            log.warning("message_dropped", msg_id=message.msg_id, reason=Outcome.MALFORMED.value)
            return Outcome.MALFORMED

        eligible = await self._get_eligible_subscribers(event.video_id, subscribers)
        if not eligible:
            await self.queue.delete(message.msg_id)
            return Outcome.NO_NEW_SUBSCRIBERS

        captions = await self.captions.fetch(event.video_id, title=event.title)
        if captions is None or not captions.transcript:
            await self.queue.delete(message.msg_id)
            return Outcome.NO_TRANSCRIPT

        summary = await self._resolve_summary(event, captions.transcript, captions.language)

        new_subscribers = await self._get_new_subscribers(event.video_id, eligible)
        if not new_subscribers:
            await self.queue.delete(message.msg_id)
            return Outcome.NO_NEW_SUBSCRIBERS

        created = await self._create_notifications(event, summary, new_subscribers)
        await self.queue.delete(message.msg_id)
        log.info(
            "notifications_created",
            video_id=event.video_id,
            subscribers=len(subscribers),
            created=created,
        )
        return Outcome.FANNED_OUT

    async def _get_channel_subscribers(self, channel_id: str) -> list[uuid.UUID]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ProfileYouTubeChannel.profile_id)
                .where(ProfileYouTubeChannel.youtube_channel_id == channel_id)
                .distinct()
            )
            return list(result.scalars().all())

    async def _unsubscribe_orphan(self, channel_id: str) -> None:
        """Stop hub pushes for a channel nobody follows. Failures are only logged."""
        try:
            await asyncio.wait_for(self.hub.unsubscribe(channel_id), timeout=self.call_timeout)
        except (HubError, httpx.HTTPError, TimeoutError) as e:
            log.warning(
                "orphan_unsubscribe_failed",
                channel_id=channel_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        log.info("orphan_channel_unsubscribed", channel_id=channel_id)

    async def _resolve_summary(
        self, event: VideoEvent, transcript: str, language: str
    ) -> dict[str, Any]:
        cached = await self.ai_content.get(event.video_id)
        if cached is not None:
            log.debug("ai_content_cache_hit", video_id=event.video_id)
            return cached.content

        summary = await asyncio.wait_for(
            self.summarizer.summarize(event.video_id, event.title, transcript, language),
            timeout=self.call_timeout,
        )
        stored = await self.ai_content.put(
            event.video_id, summary.to_content(), self.summarizer.model
        )
        return stored.content

    async def _get_eligible_subscribers(
        self, video_id: str, subscribers: Sequence[uuid.UUID]
    ) -> list[uuid.UUID]:
        """Followers whose plan currently allows another email."""
        ineligible = await self.usage.get_ineligible_profiles(subscribers)
        if ineligible:
            log.info("subscribers_ineligible", video_id=video_id, count=len(ineligible))
        return [p for p in subscribers if p not in ineligible]

    async def _get_new_subscribers(
        self, video_id: str, subscribers: Sequence[uuid.UUID]
    ) -> list[uuid.UUID]:
        """Subscribers not yet notified about this video."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(EmailNotification.profile_id).where(
                    EmailNotification.video_id == video_id,
                    EmailNotification.profile_id.in_(subscribers),
                )
            )
            already_notified = set(result.scalars().all())

        return [p for p in subscribers if p not in already_notified]

    async def _create_notifications(
        self,
        event: VideoEvent,
        summary: dict[str, Any],
        profile_ids: Sequence[uuid.UUID],
    ) -> int:
        paid = await self.usage.get_paid_profiles(profile_ids)

        bodies: dict[bool, str] = {}
        for is_paid in {p in paid for p in profile_ids}:
            bodies[is_paid] = render_email_html(
                video_title=event.title,
                channel_name=event.author_name,
                published=event.published,
                video_id=event.video_id,
                summary=summary,
                upgrade_cta="" if is_paid else UPGRADE_CTA_TEXT,
            )

        now = utcnow()
        rows = [
            {
                "id": uuid.uuid4(),
                "profile_id": profile_id,
                "channel_id": event.channel_id,
                "video_id": event.video_id,
                "title": event.title,
                "email_content": bodies[profile_id in paid],
                "status": NotificationStatus.PENDING,
                "created_at": now,
            }
            for profile_id in profile_ids
        ]

        async with self.session_factory() as db:
            stmt = insert_ignoring_conflicts(
                db, EmailNotification.__table__, "profile_id", "video_id"
            ).values(rows)
            result = await db.execute(stmt)
            await db.commit()

        return max(result.rowcount, 0)

    async def _handle_failure(self, message: QueuedMessage, reason: str) -> Outcome:
        if message.read_count >= self.max_attempts:
            await self.queue.dead_letter(message, reason)
            return Outcome.DEAD_LETTERED

        delay = retry_delay(message.read_count, self.retry_base_delay, self.retry_max_delay)
        await self.queue.release(message.msg_id, delay)
        return Outcome.RELEASED
