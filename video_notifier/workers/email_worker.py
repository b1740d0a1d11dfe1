"""Email worker: delivers pending ledger rows.

Each iteration loads up to EMAIL_BATCH_SIZE pending notifications (oldest
first) with the subscriber's address and, per row:

    - no address         → failed, failure_reason "missing_email"
    - provider accepted  → usage + 1 and sent/sent_at, one transaction
    - provider error     → failed, failure_reason = provider error (no retry)

Sends happen with no database session open. The provider idempotency key
(email-notification/<profile_id>/<video_id>) covers the window between a
successful send and the status update: a row that is re-sent after that
update was lost is collapsed by the provider.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.clients.email import ResendEmailSender
from video_notifier.config import get_email_batch_size, get_email_poll_interval
from video_notifier.exceptions import EmailDeliveryError, InvalidStateTransitionError
from video_notifier.models import (
    EmailNotification,
    NotificationStatus,
    Profile,
    notification_idempotency_key,
    utcnow,
)
from video_notifier.services.email_template import html_to_text
from video_notifier.services.usage import UsageAccounting
from video_notifier.utils.logging import get_logger
from video_notifier.workers.base import PollingWorker

log = get_logger(__name__)

MISSING_EMAIL_REASON = "missing_email"


@dataclass(frozen=True)
class PendingEmail:
    notification_id: uuid.UUID
    profile_id: uuid.UUID
    video_id: str
    title: str
    email_content: str
    email: str | None

    @property
    def idempotency_key(self) -> str:
        return notification_idempotency_key(self.profile_id, self.video_id)


def email_subject(title: str) -> str:
    return f"New Video: {title}"


class EmailWorker(PollingWorker):
    """Delivery engine for pending email notifications."""

    name = "email"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sender: ResendEmailSender,
        usage: UsageAccounting,
        interval: float | None = None,
        batch_size: int | None = None,
    ):
        super().__init__(interval if interval is not None else get_email_poll_interval())
        self.session_factory = session_factory
        self.sender = sender
        self.usage = usage
        self.batch_size = batch_size or get_email_batch_size()

    async def run_once(self) -> int:
        """Process one batch. Returns the number of rows handled."""
        batch = await self.fetch_pending()
        if not batch:
            return 0

        sent = 0
        for pending in batch:
            if await self.deliver(pending):
                sent += 1

        log.info("email_batch_processed", batch_size=len(batch), sent=sent)
        return len(batch)

    async def fetch_pending(self) -> list[PendingEmail]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    EmailNotification.id,
                    EmailNotification.profile_id,
                    EmailNotification.video_id,
                    EmailNotification.title,
                    EmailNotification.email_content,
                    Profile.email,
                )
                .outerjoin(Profile, Profile.id == EmailNotification.profile_id)
                .where(EmailNotification.status == NotificationStatus.PENDING)
                .order_by(EmailNotification.created_at)
                .limit(self.batch_size)
            )
            return [PendingEmail(*row) for row in result.all()]

    async def deliver(self, pending: PendingEmail) -> bool:
        """Send one notification and record the outcome. Returns True if sent."""
        bound_log = log.bind(
            notification_id=str(pending.notification_id), video_id=pending.video_id
        )

        if not pending.email:
            await self._mark_failed(pending, MISSING_EMAIL_REASON)
            bound_log.warning("email_recipient_missing", profile_id=str(pending.profile_id))
            return False

        try:
            await self.sender.send(
                to=pending.email,
                subject=email_subject(pending.title),
                html=pending.email_content,
                text=html_to_text(pending.email_content),
                idempotency_key=pending.idempotency_key,
            )
        except EmailDeliveryError as e:
            await self._mark_failed(pending, str(e))
            bound_log.error("email_delivery_failed", error=str(e))
            return False

        await self._mark_sent(pending)
        bound_log.info("email_notification_sent")
        return True

    async def _mark_sent(self, pending: PendingEmail) -> None:
        async with self.session_factory() as db:
            notification = await db.get(EmailNotification, pending.notification_id)
            if notification is None:
                return
            try:
                notification.status = NotificationStatus.SENT
            except InvalidStateTransitionError as e:
                log.warning("email_status_already_final", error=str(e))
                return
            notification.sent_at = utcnow()
            await self.usage.increment_usage(pending.profile_id, db=db)
            await db.commit()

    async def _mark_failed(self, pending: PendingEmail, reason: str) -> None:
        async with self.session_factory() as db:
            notification = await db.get(EmailNotification, pending.notification_id)
            if notification is None:
                return
            try:
                notification.status = NotificationStatus.FAILED
            except InvalidStateTransitionError as e:
                log.warning("email_status_already_final", error=str(e))
                return
            notification.failure_reason = reason[:2000]
            await db.commit()
