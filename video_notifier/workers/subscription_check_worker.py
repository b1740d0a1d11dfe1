"""Subscription check worker: triggers usage-period resets.

Every SUBSCRIPTION_CHECK_INTERVAL_SECONDS it finds active subscriptions whose
period ends within the next hour and hands each profile to the usage
accounting reset. The worker itself never mutates subscriptions.

Only enabled deployments sweep (SUBSCRIPTION_CHECK_ENABLED, defaulting to
APP_ENV=production); elsewhere each iteration is a logged no-op.
"""

import uuid
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.config import (
    get_subscription_check_interval,
    is_subscription_check_enabled,
)
from video_notifier.models import Subscription, SubscriptionStatus, utcnow
from video_notifier.services.usage import UsageAccounting
from video_notifier.utils.logging import get_logger
from video_notifier.workers.base import PollingWorker

log = get_logger(__name__)

CHECK_WINDOW = timedelta(hours=1)


class SubscriptionCheckWorker(PollingWorker):
    name = "subscription-check"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        usage: UsageAccounting,
        interval: float | None = None,
        enabled: bool | None = None,
    ):
        super().__init__(
            interval if interval is not None else get_subscription_check_interval()
        )
        self.session_factory = session_factory
        self.usage = usage
        self.enabled = enabled if enabled is not None else is_subscription_check_enabled()

    async def run_once(self) -> int:
        """Sweep once. Returns the number of reset calls made."""
        if not self.enabled:
            log.debug("subscription_check_disabled")
            return 0

        profile_ids = await self.find_expiring()
        if not profile_ids:
            return 0

        log.info("subscriptions_expiring", count=len(profile_ids))
        for profile_id in profile_ids:
            await self.usage.check_and_handle_usage_period_reset(profile_id)
        return len(profile_ids)

    async def find_expiring(self) -> list[uuid.UUID]:
        """Active subscriptions with now <= end_date < now + 1h."""
        now = utcnow()
        async with self.session_factory() as db:
            result = await db.execute(
                select(Subscription.profile_id).where(
                    Subscription.status == SubscriptionStatus.ACTIVE,
                    Subscription.end_date >= now,
                    Subscription.end_date < now + CHECK_WINDOW,
                )
            )
            return list(result.scalars().all())
