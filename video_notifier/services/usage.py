"""Per-period email usage accounting.

Each profile has at most one subscription row carrying usage_count and
period_limit for the current billing period. Usage is incremented once per
delivered email; the subscription check worker rolls the period forward when
it ends.

Time-window comparisons are expressed in SQL so stored timestamps are never
compared against aware Python datetimes (SQLite returns them naive).
"""

import uuid
from collections.abc import Iterable
from datetime import timedelta

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.models import FREE_PLAN, Subscription, SubscriptionStatus, utcnow
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)

# A period is rolled over once its end is this close
RESET_LEAD_WINDOW = timedelta(hours=1)
PERIOD_LENGTH = timedelta(days=30)


class UsageAccounting:
    """Usage counters, plan eligibility and period resets for subscriptions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def increment_usage(
        self, profile_id: uuid.UUID, db: AsyncSession | None = None
    ) -> bool:
        """Atomically add one delivered email to the profile's usage.

        Args:
            profile_id: Profile that received the email.
            db: Optional session; when given, the update joins its transaction
                and the caller commits.

        Returns:
            False if the profile has no subscription row (nothing is counted).
        """
        stmt = (
            update(Subscription)
            .where(Subscription.profile_id == profile_id)
            .values(usage_count=Subscription.usage_count + 1)
        )

        if db is not None:
            result = await db.execute(stmt)
        else:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()

        if result.rowcount == 0:
            log.warning("usage_increment_no_subscription", profile_id=str(profile_id))
            return False
        return True

    async def get_ineligible_profiles(
        self, profile_ids: Iterable[uuid.UUID]
    ) -> set[uuid.UUID]:
        """Profiles whose subscription does not allow another email right now.

        A subscription allows email only while it is active, inside its current
        period (start_date <= now <= end_date, open-ended when end_date is
        NULL) and under its period limit. Profiles without a subscription row
        are not returned (they are eligible).
        """
        ids = list(profile_ids)
        if not ids:
            return set()

        now = utcnow()
        async with self.session_factory() as db:
            result = await db.execute(
                select(Subscription.profile_id).where(
                    Subscription.profile_id.in_(ids),
                    or_(
                        Subscription.status != SubscriptionStatus.ACTIVE,
                        Subscription.start_date > now,
                        and_(Subscription.end_date.is_not(None), Subscription.end_date < now),
                        Subscription.usage_count >= Subscription.period_limit,
                    ),
                )
            )
            return set(result.scalars().all())

    async def get_paid_profiles(self, profile_ids: Iterable[uuid.UUID]) -> set[uuid.UUID]:
        """Profiles with an active subscription on a non-free plan."""
        ids = list(profile_ids)
        if not ids:
            return set()

        async with self.session_factory() as db:
            result = await db.execute(
                select(Subscription.profile_id).where(
                    Subscription.profile_id.in_(ids),
                    Subscription.status == SubscriptionStatus.ACTIVE,
                    Subscription.plan != FREE_PLAN,
                )
            )
            return set(result.scalars().all())

    async def check_and_handle_usage_period_reset(self, profile_id: uuid.UUID) -> bool:
        """Roll the profile's usage period forward if it is about to end.

        The active subscription's period is reset when end_date falls within
        RESET_LEAD_WINDOW of now (or has passed): start_date becomes the old
        end_date, end_date moves forward by PERIOD_LENGTH, usage_count is zeroed.

        Returns:
            True if a reset was applied.
        """
        deadline = utcnow() + RESET_LEAD_WINDOW

        async with self.session_factory() as db:
            subscription = (
                await db.execute(
                    select(Subscription)
                    .where(
                        Subscription.profile_id == profile_id,
                        Subscription.status == SubscriptionStatus.ACTIVE,
                        Subscription.end_date.is_not(None),
                        Subscription.end_date <= deadline,
                    )
                    .with_for_update()
                )
            ).scalar_one_or_none()

            if subscription is None:
                log.debug("usage_period_reset_not_due", profile_id=str(profile_id))
                return False

            previous_usage = subscription.usage_count
            subscription.start_date = subscription.end_date
            subscription.end_date = subscription.end_date + PERIOD_LENGTH
            subscription.usage_count = 0
            await db.commit()

        log.info(
            "usage_period_reset",
            profile_id=str(profile_id),
            previous_usage=previous_usage,
        )
        return True
