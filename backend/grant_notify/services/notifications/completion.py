"""Completion tracker: an event is processed once none of its deliveries is pending."""
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from grant_notify.core.constants import STATUS_PENDING
from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.models.notification_event import NotificationEvent


def mark_event_processed(db: Session, event_id: int, now: datetime | None = None) -> bool:
    """Set processed_at only if still null. Returns True when this call set it."""
    now = now or datetime.now(timezone.utc)
    updated = (
        db.query(NotificationEvent)
        .filter(NotificationEvent.id == event_id, NotificationEvent.processed_at.is_(None))
        .update({NotificationEvent.processed_at: now}, synchronize_session=False)
    )
    return updated > 0


def pending_delivery_count(db: Session, event_id: int) -> int:
    return (
        db.query(func.count(NotificationDelivery.id))
        .filter(NotificationDelivery.event_id == event_id, NotificationDelivery.status == STATUS_PENDING)
        .scalar()
        or 0
    )


def finalize_events(db: Session, event_ids, now: datetime | None = None) -> list[int]:
    """
    For each event with zero pending deliveries, set processed_at (idempotent) and commit.
    Events with a retry still scheduled stay in flight. Returns ids marked by this call.
    """
    now = now or datetime.now(timezone.utc)
    marked: list[int] = []
    for event_id in sorted({e for e in event_ids if e is not None}):
        if pending_delivery_count(db, event_id) == 0 and mark_event_processed(db, event_id, now):
            marked.append(event_id)
    db.commit()
    return marked
