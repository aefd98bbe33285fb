"""
Idempotent enqueue: the single entry point domain code uses to send a notification.

enqueue_event inserts the event (ON CONFLICT (idempotency_key) DO NOTHING), expands it into
deliveries in the same transaction, commits, then kicks a fire-and-forget drain in a daemon
thread. The drain never affects the enqueue result.
"""
import logging
import threading

from sqlalchemy.orm import Session

from grant_notify.config import settings
from grant_notify.core.constants import (
    BACKGROUND_DRAIN_MIN_LIMIT,
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    MAX_IDEMPOTENCY_KEY_LENGTH,
    REASON_DUPLICATE,
    REASON_NO_RECIPIENTS,
)
from grant_notify.core.errors import InvalidNotificationError
from grant_notify.db.session import SessionLocal
from grant_notify.db.upsert import dialect_insert
from grant_notify.models.notification_event import NotificationEvent
from grant_notify.services.notifications.expander import expand_event
from grant_notify.services.notifications.types import (
    EnqueueResult,
    NotificationContent,
    channel_for_event_type,
    sanitize_link_path,
    unique_ids,
)
from grant_notify.services.notifications.worker import process_pending_deliveries

logger = logging.getLogger(__name__)


def enqueue_event(
    db: Session,
    event_type: str,
    recipient_user_ids,
    idempotency_key: str,
    content: NotificationContent,
    link_path: str | None = None,
    payload: dict | None = None,
    actor_user_id: str | None = None,
    entity_id: str | None = None,
    drain: bool | None = None,
) -> EnqueueResult:
    """
    Record one event and its deliveries. Duplicate keys and empty recipient lists are
    results, not errors. Invalid content or an unknown event type raises InvalidNotificationError.
    """
    channel = channel_for_event_type(event_type)
    recipients = unique_ids(recipient_user_ids)
    if not recipients:
        return EnqueueResult(enqueued=False, reason=REASON_NO_RECIPIENTS)
    key = (idempotency_key or "").strip()
    if not key:
        raise InvalidNotificationError("Idempotency key is required.")
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise InvalidNotificationError(f"Idempotency key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters.")
    content = content.validated(channel)
    link_path = sanitize_link_path(link_path)

    stmt = (
        dialect_insert(db, NotificationEvent)
        .values(
            channel=channel,
            event_type=event_type,
            actor_user_id=actor_user_id,
            entity_id=str(entity_id) if entity_id is not None else None,
            idempotency_key=key,
            title=content.title,
            body=content.body,
            html_body=content.html_body,
            link_path=link_path,
            link_label=content.link_label,
            payload=payload or {},
            recipient_user_ids=recipients,
        )
        .on_conflict_do_nothing(index_elements=["idempotency_key"])
        .returning(NotificationEvent.id)
    )
    event_id = db.execute(stmt).scalar()
    if event_id is None:
        logger.debug("Duplicate notification key %s", key)
        return EnqueueResult(enqueued=False, reason=REASON_DUPLICATE)

    event = db.get(NotificationEvent, event_id)
    queued = expand_event(db, event)
    db.commit()
    logger.info("Enqueued %s event %s (%s): %s deliveries", channel, event_id, event_type, queued)

    if queued and (settings.background_drain_enabled if drain is None else drain):
        start_background_drain(channel, event_id=event_id, limit=max(BACKGROUND_DRAIN_MIN_LIMIT, queued))
    return EnqueueResult(enqueued=True, event_id=event_id, queued_delivery_count=queued)


def _drain_in_background(channel: str, event_id: int | None, limit: int) -> None:
    db = SessionLocal()
    try:
        process_pending_deliveries(db, channel, limit=limit, event_id=event_id)
    except Exception:
        db.rollback()
        logger.exception("Background %s drain failed (event %s)", channel, event_id)
    finally:
        db.close()


def start_background_drain(channel: str, event_id: int | None = None, limit: int = BACKGROUND_DRAIN_MIN_LIMIT) -> None:
    """Fire-and-forget drain in a daemon thread with its own session."""
    thread = threading.Thread(
        target=_drain_in_background,
        args=(channel, event_id, limit),
        daemon=True,
        name=f"drain-{channel}",
    )
    thread.start()


def queue_push_event(
    db: Session,
    event_type: str,
    recipient_user_ids,
    idempotency_key: str,
    title: str,
    body: str,
    link_path: str | None = None,
    payload: dict | None = None,
    actor_user_id: str | None = None,
    entity_id: str | None = None,
) -> EnqueueResult:
    """Push wrapper used by domain code (proposal created, status changed, ...)."""
    if channel_for_event_type(event_type) != CHANNEL_PUSH:
        raise InvalidNotificationError(f"{event_type} is not a push event type.")
    return enqueue_event(
        db,
        event_type,
        recipient_user_ids,
        idempotency_key,
        NotificationContent(title=title, body=body),
        link_path=link_path,
        payload=payload,
        actor_user_id=actor_user_id,
        entity_id=entity_id,
    )


def queue_email_notification(
    db: Session,
    event_type: str,
    recipient_user_ids,
    idempotency_key: str,
    subject: str,
    html_body: str,
    text_body: str,
    link_path: str | None = None,
    link_label: str | None = None,
    payload: dict | None = None,
    actor_user_id: str | None = None,
    entity_id: str | None = None,
) -> EnqueueResult:
    if channel_for_event_type(event_type) != CHANNEL_EMAIL:
        raise InvalidNotificationError(f"{event_type} is not an email event type.")
    return enqueue_event(
        db,
        event_type,
        recipient_user_ids,
        idempotency_key,
        NotificationContent.email(subject, html_body, text_body, link_label),
        link_path=link_path,
        payload=payload,
        actor_user_id=actor_user_id,
        entity_id=entity_id,
    )
