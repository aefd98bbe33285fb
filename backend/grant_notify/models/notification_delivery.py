"""Notification delivery: one attempt-unit (event x recipient endpoint).

endpoint is the APNs device token (push) or the email address (email).
At most one row per (event_id, recipient_user_id, endpoint); expansion inserts with
ON CONFLICT DO NOTHING so re-running it is a no-op.
status moves forward only: pending -> sent | failed | permanently_failed.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from grant_notify.db.base import Base


class NotificationDelivery(Base):
    __tablename__ = "notification_deliveries"
    __table_args__ = (
        UniqueConstraint("event_id", "recipient_user_id", "endpoint", name="uq_notification_deliveries_event_recipient_endpoint"),
        Index("ix_notification_deliveries_due", "channel", "status", "next_attempt_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("notification_events.id", ondelete="SET NULL"), nullable=True, index=True)
    channel = Column(String(16), nullable=False)  # copied from the event so the drain needs no join
    recipient_user_id = Column(String(64), nullable=False, index=True)
    endpoint = Column(String(512), nullable=False)
    subscription_id = Column(Integer, ForeignKey("push_subscriptions.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(32), nullable=False, server_default="pending")
    attempt_count = Column(Integer, nullable=False, default=0, server_default="0")
    next_attempt_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    last_response_code = Column(Integer, nullable=True)
    provider_message_id = Column(String(255), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    event = relationship("NotificationEvent", back_populates="deliveries")
