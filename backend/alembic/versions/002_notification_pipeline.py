"""Notification pipeline: events, deliveries, preferences, push subscriptions, job audits

Revision ID: 002
Revises: 001
Create Date: (run alembic upgrade head)

Unique constraints carry the idempotency guarantees:
- notification_events.idempotency_key (enqueue)
- notification_deliveries (event_id, recipient_user_id, endpoint) (expansion)
- email_weekly_reminders (user_id, week_key), email_daily_digests.day_key (scheduled jobs)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

PREFERENCE_FLAGS = (
    "push_enabled",
    "email_enabled",
    "proposal_created",
    "proposal_ready_for_meeting",
    "proposal_status_changed",
    "policy_update_published",
    "proposal_approved_for_admin",
    "action_required",
    "weekly_action_reminder",
    "proposal_sent_fyi",
)


def upgrade() -> None:
    op.create_table(
        "notification_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("actor_user_id", sa.String(64), nullable=True),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("html_body", sa.Text(), nullable=True),
        sa.Column("link_path", sa.String(1024), nullable=False, server_default="/"),
        sa.Column("link_label", sa.String(128), nullable=True),
        sa.Column("payload", JSON, nullable=False),
        sa.Column("recipient_user_ids", JSON, nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("idempotency_key", name="uq_notification_events_idempotency_key"),
    )
    op.create_index("ix_notification_events_channel", "notification_events", ["channel"])
    op.create_index("ix_notification_events_event_type", "notification_events", ["event_type"])
    op.create_index("ix_notification_events_entity_id", "notification_events", ["entity_id"])

    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("device_token", sa.String(256), nullable=False),
        sa.Column("platform", sa.String(16), nullable=False, server_default="ios"),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_push_subscriptions_user_id", "push_subscriptions", ["user_id"])
    op.create_index("ix_push_subscriptions_device_token", "push_subscriptions", ["device_token"], unique=True)

    op.create_table(
        "notification_deliveries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("notification_events.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("recipient_user_id", sa.String(64), nullable=False),
        sa.Column("endpoint", sa.String(512), nullable=False),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey("push_subscriptions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_response_code", sa.Integer(), nullable=True),
        sa.Column("provider_message_id", sa.String(255), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "event_id",
            "recipient_user_id",
            "endpoint",
            name="uq_notification_deliveries_event_recipient_endpoint",
        ),
    )
    op.create_index("ix_notification_deliveries_event_id", "notification_deliveries", ["event_id"])
    op.create_index("ix_notification_deliveries_recipient_user_id", "notification_deliveries", ["recipient_user_id"])
    op.create_index(
        "ix_notification_deliveries_due",
        "notification_deliveries",
        ["channel", "status", "next_attempt_at"],
    )

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        *[sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.true()) for name in PREFERENCE_FLAGS],
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "email_weekly_reminders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("week_key", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "week_key", name="uq_email_weekly_reminders_user_week"),
    )
    op.create_index("ix_email_weekly_reminders_user_id", "email_weekly_reminders", ["user_id"])

    op.create_table(
        "email_daily_digests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("day_key", sa.String(10), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("email_daily_digests")
    op.drop_table("email_weekly_reminders")
    op.drop_table("notification_preferences")
    op.drop_table("notification_deliveries")
    op.drop_table("push_subscriptions")
    op.drop_table("notification_events")
