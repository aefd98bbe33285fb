"""Dedup audit rows for scheduled email jobs.

Row existence means "already produced an event for this period". Checked before any
content is rendered, independent of the event idempotency key.
"""
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from grant_notify.db.base import Base


class WeeklyReminderAudit(Base):
    __tablename__ = "email_weekly_reminders"
    __table_args__ = (UniqueConstraint("user_id", "week_key", name="uq_email_weekly_reminders_user_week"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    week_key = Column(String(16), nullable=False)  # ISO week, e.g. 2026-W07
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class DailyDigestAudit(Base):
    __tablename__ = "email_daily_digests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day_key = Column(String(10), nullable=False, unique=True)  # YYYY-MM-DD in the reference time zone
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
