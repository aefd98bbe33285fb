"""Notification event: one domain occurrence to fan out to N recipients on one channel.

Append-only audit trail. Only processed_at is ever updated (set once, when no delivery
for the event is still pending). idempotency_key is globally unique across channels.
title = push title or email subject; body = push body or email text part; html_body = email only.
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from grant_notify.db.base import Base
from grant_notify.models._types import JSONType


class NotificationEvent(Base):
    __tablename__ = "notification_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    channel = Column(String(16), nullable=False, index=True)  # 'push' | 'email'
    event_type = Column(String(64), nullable=False, index=True)
    actor_user_id = Column(String(64), nullable=True)
    entity_id = Column(String(64), nullable=True, index=True)
    idempotency_key = Column(String(255), nullable=False, unique=True)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    html_body = Column(Text, nullable=True)
    link_path = Column(String(1024), nullable=False, server_default="/")
    link_label = Column(String(128), nullable=True)
    payload = Column(JSONType, nullable=False, default=dict)
    recipient_user_ids = Column(JSONType, nullable=False, default=list)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    deliveries = relationship("NotificationDelivery", back_populates="event")
