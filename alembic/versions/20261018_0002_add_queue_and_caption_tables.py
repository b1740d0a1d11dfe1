"""add_queue_and_caption_tables

Revision ID: 20261018_0002_add_queue_and_caption_tables
Revises: 20261018_0001_initial_notification_schema
Create Date: 2026-10-18

Adds the notification queue and the transcript cache.

Table Structure:
    - queue_messages: at-least-once queue; popped with
      FOR UPDATE SKIP LOCKED WHERE visible_at <= now()
    - queue_dead_letters: messages that exhausted QUEUE_MAX_ATTEMPTS
    - video_captions: transcript cache keyed by video_id
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0002_add_queue_and_caption_tables"
down_revision: str | None = "20261018_0001_initial_notification_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "queue_messages",
        sa.Column("msg_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("queue_name", sa.String(100), nullable=False),
        sa.Column("read_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("visible_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("msg_id"),
    )
    op.create_index(
        "ix_queue_messages_queue_visible", "queue_messages", ["queue_name", "visible_at"]
    )

    op.create_table(
        "queue_dead_letters",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("original_msg_id", sa.Integer(), nullable=False),
        sa.Column("queue_name", sa.String(100), nullable=False),
        sa.Column("read_count", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("dead_lettered_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_queue_dead_letters_original_msg_id", "queue_dead_letters", ["original_msg_id"]
    )

    op.create_table(
        "video_captions",
        sa.Column("video_id", sa.String(32), nullable=False),
        sa.Column("transcript", sa.Text(), nullable=False),
        sa.Column("language", sa.String(16), nullable=False),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("video_id"),
    )


def downgrade() -> None:
    op.drop_table("video_captions")
    op.drop_index("ix_queue_dead_letters_original_msg_id", table_name="queue_dead_letters")
    op.drop_table("queue_dead_letters")
    op.drop_index("ix_queue_messages_queue_visible", table_name="queue_messages")
    op.drop_table("queue_messages")
