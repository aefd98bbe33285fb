"""Per-user notification preferences: one global flag per channel + one flag per event type.

No row means everything enabled (fail-open), so new users are never silently unreachable.
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, true
from sqlalchemy.sql import func

from grant_notify.db.base import Base


def _flag():
    return Column(Boolean, nullable=False, default=True, server_default=true())


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, unique=True)

    push_enabled = _flag()
    email_enabled = _flag()

    # push event types
    proposal_created = _flag()
    proposal_ready_for_meeting = _flag()
    proposal_status_changed = _flag()
    policy_update_published = _flag()
    proposal_approved_for_admin = _flag()
    # email event types
    action_required = _flag()
    weekly_action_reminder = _flag()
    proposal_sent_fyi = _flag()

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
