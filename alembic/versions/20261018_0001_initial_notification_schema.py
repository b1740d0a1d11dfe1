"""initial_notification_schema

Revision ID: 20261018_0001_initial_notification_schema
Revises:
Create Date: 2026-10-18

Creates the subscriber-facing tables and the notification ledger.

Table Structure:
    - profiles: subscriber accounts (email may be null)
    - profiles_youtube_channels: (profile_id, youtube_channel_id) follows
    - subscriptions: one per profile; plan, period and usage counters
    - ai_content: summary cache, primary key video_id (first write wins)
    - email_notifications: ledger, unique (profile_id, video_id)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0001_initial_notification_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

notification_status = sa.Enum("pending", "sent", "failed", name="notificationstatus")
subscription_status = sa.Enum(
    "active", "canceled", "past_due", "expired", name="subscriptionstatus"
)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "profiles_youtube_channels",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("profile_id", sa.UUID(), nullable=False),
        sa.Column("youtube_channel_id", sa.String(64), nullable=False),
        sa.Column("subscribed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("profile_id", "youtube_channel_id", name="uq_profile_channel"),
    )
    op.create_index(
        "ix_profiles_youtube_channels_youtube_channel_id",
        "profiles_youtube_channels",
        ["youtube_channel_id"],
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("profile_id", sa.UUID(), nullable=False),
        sa.Column("plan", sa.String(50), nullable=False, server_default="free"),
        sa.Column("status", subscription_status, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("period_limit", sa.Integer(), nullable=False, server_default="50"),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("profile_id"),
        sa.CheckConstraint("usage_count >= 0", name="ck_subscriptions_usage_non_negative"),
        sa.CheckConstraint("period_limit >= 0", name="ck_subscriptions_limit_non_negative"),
    )
    # Subscription check sweep: status = 'active' AND end_date in the next hour
    op.create_index(
        "ix_subscriptions_status_end_date", "subscriptions", ["status", "end_date"]
    )

    op.create_table(
        "ai_content",
        sa.Column("video_id", sa.String(32), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("video_id"),
    )

    op.create_table(
        "email_notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("profile_id", sa.UUID(), nullable=False),
        sa.Column("channel_id", sa.String(64), nullable=False),
        sa.Column("video_id", sa.String(32), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("email_content", sa.Text(), nullable=False),
        sa.Column("status", notification_status, nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "profile_id", "video_id", name="uq_email_notifications_profile_video"
        ),
    )
    op.create_index(
        "ix_email_notifications_video_id", "email_notifications", ["video_id"]
    )
    op.create_index(
        "ix_email_notifications_status_created_at",
        "email_notifications",
        ["status", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_email_notifications_status_created_at", table_name="email_notifications")
    op.drop_index("ix_email_notifications_video_id", table_name="email_notifications")
    op.drop_table("email_notifications")
    op.drop_table("ai_content")
    op.drop_index("ix_subscriptions_status_end_date", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index(
        "ix_profiles_youtube_channels_youtube_channel_id",
        table_name="profiles_youtube_channels",
    )
    op.drop_table("profiles_youtube_channels")
    op.drop_table("profiles")
    notification_status.drop(op.get_bind(), checkfirst=True)
    subscription_status.drop(op.get_bind(), checkfirst=True)
