"""Initial schema

Revision ID: 5f2c9a7d1e03
Revises:
Create Date: 2026-10-19 09:12:44.120931

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5f2c9a7d1e03"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("plan", sa.String(length=20), nullable=False),
        sa.Column("pushes_used", sa.Integer(), nullable=False),
        sa.Column("pushes_reset_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("api_key", sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["accounts.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_topics_id"), "topics", ["id"], unique=False)
    op.create_index(op.f("ix_topics_name"), "topics", ["name"], unique=True)
    op.create_index(op.f("ix_topics_owner_id"), "topics", ["owner_id"], unique=False)
    op.create_index(op.f("ix_topics_api_key"), "topics", ["api_key"], unique=True)

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=10), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("click_url", sa.String(length=2048), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_messages_topic_id"), "messages", ["topic_id"], unique=False)
    op.create_index(op.f("ix_messages_created_at"), "messages", ["created_at"], unique=False)

    op.create_table(
        "subscribers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.Column("endpoint", sa.String(length=2048), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("topic_id", "endpoint", name="uq_topic_endpoint"),
    )
    op.create_index(op.f("ix_subscribers_id"), "subscribers", ["id"], unique=False)
    op.create_index(op.f("ix_subscribers_topic_id"), "subscribers", ["topic_id"], unique=False)
    op.create_index(op.f("ix_subscribers_active"), "subscribers", ["active"], unique=False)

    op.create_table(
        "delivery_attempts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.String(length=36), nullable=False),
        sa.Column("subscriber_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["subscriber_id"], ["subscribers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("message_id", "subscriber_id", name="uq_message_subscriber"),
    )
    op.create_index(op.f("ix_delivery_attempts_id"), "delivery_attempts", ["id"], unique=False)
    op.create_index(
        op.f("ix_delivery_attempts_message_id"), "delivery_attempts", ["message_id"], unique=False
    )
    op.create_index(
        op.f("ix_delivery_attempts_subscriber_id"),
        "delivery_attempts",
        ["subscriber_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_delivery_attempts_status"), "delivery_attempts", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_delivery_attempts_next_attempt_at"),
        "delivery_attempts",
        ["next_attempt_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("delivery_attempts")
    op.drop_table("subscribers")
    op.drop_table("messages")
    op.drop_table("topics")
    op.drop_table("accounts")
