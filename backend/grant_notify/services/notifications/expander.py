"""
Delivery expander: one event -> zero or more per-recipient-endpoint deliveries.

Recipients are filtered by preferences (fail-open), then expanded by reachability:
push -> one delivery per active subscription, email -> one delivery per user with an
email address. Inserts use ON CONFLICT DO NOTHING on (event_id, recipient, endpoint),
so expanding the same event twice never duplicates rows.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from grant_notify.core.constants import CHANNEL_EMAIL, CHANNEL_PUSH, STATUS_PENDING
from grant_notify.db.upsert import dialect_insert
from grant_notify.models.committee import UserProfile
from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.models.notification_event import NotificationEvent
from grant_notify.models.push_subscription import PushSubscription
from grant_notify.services.notifications.completion import mark_event_processed
from grant_notify.services.notifications.preferences import load_preferences
from grant_notify.services.notifications.types import unique_ids

logger = logging.getLogger(__name__)


def eligible_recipients(db: Session, event: NotificationEvent) -> list[str]:
    """Recipients whose channel flag and event-type flag are both on."""
    recipients = unique_ids(event.recipient_user_ids or [])
    preferences = load_preferences(db, recipients)
    return [uid for uid in recipients if preferences[uid].allows(event.channel, event.event_type)]


def _push_targets(db: Session, user_ids: list[str]) -> list[dict]:
    subs = (
        db.query(PushSubscription)
        .filter(PushSubscription.user_id.in_(user_ids), PushSubscription.is_active.is_(True))
        .order_by(PushSubscription.id)
        .all()
    )
    return [
        {"recipient_user_id": s.user_id, "endpoint": s.device_token, "subscription_id": s.id}
        for s in subs
    ]


def _email_targets(db: Session, user_ids: list[str]) -> list[dict]:
    users = db.query(UserProfile).filter(UserProfile.id.in_(user_ids)).order_by(UserProfile.id).all()
    return [
        {"recipient_user_id": u.id, "endpoint": u.email.strip(), "subscription_id": None}
        for u in users
        if (u.email or "").strip()
    ]


def expand_event(db: Session, event: NotificationEvent, now: datetime | None = None) -> int:
    """
    Create pending deliveries for *event*. Returns how many rows this call inserted.
    Does not commit. If the event ends up with no deliveries at all it is marked processed.
    """
    now = now or datetime.now(timezone.utc)
    eligible = eligible_recipients(db, event)
    targets: list[dict] = []
    if eligible:
        if event.channel == CHANNEL_PUSH:
            targets = _push_targets(db, eligible)
        elif event.channel == CHANNEL_EMAIL:
            targets = _email_targets(db, eligible)

    created = 0
    if targets:
        rows = [
            {
                **t,
                "event_id": event.id,
                "channel": event.channel,
                "status": STATUS_PENDING,
                "attempt_count": 0,
                "next_attempt_at": now,
            }
            for t in targets
        ]
        stmt = dialect_insert(db, NotificationDelivery).values(rows).on_conflict_do_nothing(
            index_elements=["event_id", "recipient_user_id", "endpoint"]
        )
        created = max(db.execute(stmt).rowcount or 0, 0)

    total = (
        db.query(func.count(NotificationDelivery.id))
        .filter(NotificationDelivery.event_id == event.id)
        .scalar()
        or 0
    )
    if total == 0:
        mark_event_processed(db, event.id, now)
    logger.debug(
        "Expanded event %s (%s): %s recipients, %s eligible, %s endpoints, %s new deliveries",
        event.id, event.event_type, len(event.recipient_user_ids or []), len(eligible), len(targets), created,
    )
    return created
