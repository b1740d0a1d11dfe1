"""SQLAlchemy 2.0 ORM models.

This module contains all SQLAlchemy models for the notification pipeline.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Ownership:
    profiles, profiles_youtube_channels, subscriptions: owned by the dashboard
        and billing services; read here (subscriptions.usage_count is mutated
        by usage accounting).
    queue_messages, queue_dead_letters: the notification queue.
    video_captions, ai_content: transcript and summary caches.
    email_notifications: the notification ledger (delivery record + dedup index).

Timestamps:
    All timestamps are written as timezone-aware UTC. SQLite (tests) returns
    them naive, so time-window comparisons are always done in SQL, never in
    Python against loaded values.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from video_notifier.exceptions import InvalidStateTransitionError


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def notification_idempotency_key(profile_id: uuid.UUID, video_id: str) -> str:
    """Email provider idempotency key; stable across re-sends of the same ledger row."""
    return f"email-notification/{profile_id}/{video_id}"


class NotificationStatus(enum.Enum):
    """Delivery status of a ledger row.

    Flow:
        pending → sent (email accepted by the provider)
        pending → failed (provider error or missing recipient email)

    Terminal States:
        sent, failed
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class SubscriptionStatus(enum.Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    EXPIRED = "expired"


FREE_PLAN = "free"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Profile(Base):
    """Subscriber account. Only the fields the pipeline reads are mapped."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str | None] = mapped_column(
        String(320),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    subscription: Mapped["Subscription | None"] = relationship(
        "Subscription", back_populates="profile", uselist=False
    )

    def __repr__(self) -> str:
        # Never log full addresses
        email_info = "set" if self.email else "not_set"
        return f"<Profile(id={self.id!s:.8}, email={email_info})>"


class ProfileYouTubeChannel(Base):
    """Membership row: a profile follows a YouTube channel.

    These rows are the fan-out targets for a channel's video events.

    Attributes:
        profile_id: Follower profile.
        youtube_channel_id: YouTube channel id (e.g., "UCeMQiXmFNTtN3OHlNJxnnUw").
        subscribed_at: Last successful PubSubHubbub subscribe for this channel,
            None if the hub lease was never requested.
    """

    __tablename__ = "profiles_youtube_channels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    youtube_channel_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    subscribed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("profile_id", "youtube_channel_id", name="uq_profile_channel"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProfileYouTubeChannel(profile_id={self.profile_id!s:.8}, "
            f"channel={self.youtube_channel_id!r})>"
        )


class Subscription(Base):
    """Plan subscription and per-period usage for a profile.

    Attributes:
        plan: Plan name ("free", "basic", "pro"). Non-free plans skip the upgrade CTA.
        status: SubscriptionStatus; only ACTIVE subscriptions are swept.
        start_date: Start of the current usage period.
        end_date: End of the current usage period (None = open-ended).
        usage_count: Emails sent during the current period.
        period_limit: Emails allowed per period.
    """

    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    plan: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=FREE_PLAN,
        server_default=FREE_PLAN,
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(
            SubscriptionStatus,
            native_enum=True,
            name="subscriptionstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    period_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=50,
        server_default="50",
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="subscription")

    __table_args__ = (
        Index("ix_subscriptions_status_end_date", "status", "end_date"),
        CheckConstraint("usage_count >= 0", name="ck_subscriptions_usage_non_negative"),
        CheckConstraint("period_limit >= 0", name="ck_subscriptions_limit_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(profile_id={self.profile_id!s:.8}, plan={self.plan!r}, "
            f"status={self.status.value!r}, usage={self.usage_count}/{self.period_limit})>"
        )


class QueueMessage(Base):
    """Durable at-least-once queue entry.

    A message is visible when visible_at <= now. pop() hides it for the
    visibility timeout and increments read_count; delete() consumes it.
    A message that is never deleted reappears with its read_count intact.

    Attributes:
        msg_id: Monotonic message id (unique per stored message).
        queue_name: Logical queue (default "youtube_data_queue").
        read_count: Times the message has been handed to a consumer.
        enqueued_at: Insert time.
        visible_at: Earliest time the message may be popped again.
        payload: VideoEvent as camelCase JSON.
    """

    __tablename__ = "queue_messages"

    msg_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    queue_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    read_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    visible_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_queue_messages_queue_visible", "queue_name", "visible_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<QueueMessage(msg_id={self.msg_id}, queue={self.queue_name!r}, "
            f"read_count={self.read_count})>"
        )


class DeadLetterMessage(Base):
    """Queue message that exhausted its delivery attempts."""

    __tablename__ = "queue_dead_letters"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    original_msg_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    queue_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    read_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    dead_lettered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<DeadLetterMessage(original_msg_id={self.original_msg_id}, "
            f"read_count={self.read_count})>"
        )


class VideoCaption(Base):
    """Fetched transcript for a video, reused across redeliveries."""

    __tablename__ = "video_captions"

    video_id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
    )
    transcript: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    language: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="en",
    )
    title: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<VideoCaption(video_id={self.video_id!r}, language={self.language!r}, "
            f"length={len(self.transcript or '')})>"
        )


class AIContent(Base):
    """Cached AI summary for a video.

    The first successful write for a video_id is authoritative. Writers use
    INSERT ... ON CONFLICT DO NOTHING so concurrent puts never overwrite it.

    Attributes:
        video_id: YouTube video id (primary key).
        content: {"briefSummary": str, "keyPoints": [str, ...]}
        model: Model that produced the summary (e.g., "gpt-4o-mini").
        created_at: First write time.
    """

    __tablename__ = "ai_content"

    video_id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
    )
    content: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )
    model: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return f"<AIContent(video_id={self.video_id!r}, model={self.model!r})>"


class EmailNotification(Base):
    """Notification ledger row: one per (profile, video).

    Created pending by the QueueWorker; moved to sent or failed by the
    EmailWorker. Rows are never deleted: the table is both the audit trail
    and the fan-out dedup index.

    Indexes:
        - uq_email_notifications_profile_video: dedup key for fan-out
        - ix_email_notifications_status_created_at: pending batch scans
    """

    __tablename__ = "email_notifications"

    VALID_TRANSITIONS = {
        NotificationStatus.PENDING: [NotificationStatus.SENT, NotificationStatus.FAILED],
        NotificationStatus.SENT: [],  # Terminal
        NotificationStatus.FAILED: [],  # Terminal
    }

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    channel_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    video_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    email_content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(
            NotificationStatus,
            native_enum=True,
            name="notificationstatus",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=NotificationStatus.PENDING,
    )
    failure_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    profile: Mapped["Profile"] = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("profile_id", "video_id", name="uq_email_notifications_profile_video"),
        Index("ix_email_notifications_status_created_at", "status", "created_at"),
    )

    @validates("status")
    def validate_status_change(
        self, key: str, value: NotificationStatus
    ) -> NotificationStatus:
        """Enforce pending → sent | failed.

        Raises:
            InvalidStateTransitionError: If the row is already terminal or the
                target is not reachable from the current status.
        """
        # Initial assignment on construction
        if self.status is None:
            return value

        allowed_transitions = self.VALID_TRANSITIONS.get(self.status, [])
        if value not in allowed_transitions:
            raise InvalidStateTransitionError(
                f"Invalid transition: {self.status.value} → {value.value}",
                from_status=self.status,
                to_status=value,
            )

        return value

    @property
    def idempotency_key(self) -> str:
        return notification_idempotency_key(self.profile_id, self.video_id)

    def __repr__(self) -> str:
        return (
            f"<EmailNotification(id={self.id!s:.8}, video_id={self.video_id!r}, "
            f"status={self.status.value!r})>"
        )
