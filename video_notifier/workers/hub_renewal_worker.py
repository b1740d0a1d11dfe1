"""Hub renewal worker: keeps PubSubHubbub leases alive for followed channels.

Hub leases expire, after which YouTube stops pushing new-video notifications.
Every HUB_RENEWAL_INTERVAL_SECONDS the worker re-subscribes up to
RENEWAL_BATCH_SIZE channels that were never subscribed or were last
subscribed more than RENEWAL_AGE ago, and stamps subscribed_at on every
membership row of each renewed channel.
"""

import asyncio
from datetime import timedelta

import httpx
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.clients.hub import HubClient
from video_notifier.config import (
    get_external_call_timeout,
    get_hub_renewal_interval,
    is_hub_renewal_enabled,
)
from video_notifier.exceptions import HubError
from video_notifier.models import ProfileYouTubeChannel, utcnow
from video_notifier.utils.logging import get_logger
from video_notifier.workers.base import PollingWorker

log = get_logger(__name__)

RENEWAL_AGE = timedelta(days=7)
RENEWAL_BATCH_SIZE = 10


class HubRenewalWorker(PollingWorker):
    name = "hub-renewal"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hub: HubClient,
        interval: float | None = None,
        enabled: bool | None = None,
        call_timeout: float | None = None,
    ):
        super().__init__(interval if interval is not None else get_hub_renewal_interval())
        self.session_factory = session_factory
        self.hub = hub
        self.enabled = enabled if enabled is not None else is_hub_renewal_enabled()
        self.call_timeout = call_timeout if call_timeout is not None else get_external_call_timeout()

    async def run_once(self) -> int:
        """Renew one batch. Returns the number of channels renewed."""
        if not self.enabled:
            log.debug("hub_renewal_disabled")
            return 0

        channel_ids = await self.find_due_channels()
        if not channel_ids:
            log.debug("hub_renewal_nothing_due")
            return 0

        renewed = 0
        for channel_id in channel_ids:
            try:
                await asyncio.wait_for(self.hub.subscribe(channel_id), timeout=self.call_timeout)
            except (HubError, httpx.HTTPError, TimeoutError) as e:
                log.error(
                    "hub_renewal_failed",
                    channel_id=channel_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            await self._mark_subscribed(channel_id)
            renewed += 1

        log.info("hub_renewal_batch_processed", due=len(channel_ids), renewed=renewed)
        return renewed

    async def find_due_channels(self) -> list[str]:
        cutoff = utcnow() - RENEWAL_AGE
        async with self.session_factory() as db:
            result = await db.execute(
                select(ProfileYouTubeChannel.youtube_channel_id)
                .where(
                    or_(
                        ProfileYouTubeChannel.subscribed_at.is_(None),
                        ProfileYouTubeChannel.subscribed_at < cutoff,
                    )
                )
                .distinct()
                .order_by(ProfileYouTubeChannel.youtube_channel_id)
                .limit(RENEWAL_BATCH_SIZE)
            )
            return list(result.scalars().all())

    async def _mark_subscribed(self, channel_id: str) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(ProfileYouTubeChannel)
                .where(ProfileYouTubeChannel.youtube_channel_id == channel_id)
                .values(subscribed_at=utcnow())
            )
            await db.commit()
