"""Device push subscription (APNs device token) for one committee user.

Deactivated (not deleted) on unsubscribe or when APNs reports the token gone, so
expansion skips it and history on notification_deliveries stays intact.
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, true
from sqlalchemy.sql import func

from grant_notify.db.base import Base


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    device_token = Column(String(256), nullable=False, unique=True, index=True)
    platform = Column(String(16), nullable=False, server_default="ios")
    user_agent = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
