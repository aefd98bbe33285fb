"""
Delivery worker: drain due deliveries for one channel and apply the retry state machine.

One pass = select up to `limit` pending deliveries with next_attempt_at <= now (oldest
due first), claim each with a conditional update, make exactly one adapter call, write
the outcome with another conditional update, then finalize every touched event.

Outcomes per attempt:
  success    -> sent
  permanent  -> permanently_failed at once (push also deactivates the subscription)
  transient  -> failed when attempt_count reaches max_attempts, else stays pending with
                next_attempt_at = now + min(cap, 2 ** (attempt_count - 1)) minutes

Concurrent drains are safe: each claim pushes next_attempt_at to the wall clock at
claim time plus a lease (DELIVERY_CLAIM_SECONDS), so a second worker selecting the same
row loses the claim and skips it, however long the first pass has been running. The
claim also counts the attempt. A worker that dies mid-send leaves the row pending; it is
retried once the lease runs out and fails for good once the attempts are used up.
Storage errors propagate and abort the pass; adapter and referential problems are
recorded per delivery and never raised.
"""
import logging
import time
from collections import namedtuple
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from grant_notify.config import settings
from grant_notify.core.constants import (
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    ROLE_OVERSIGHT,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PERMANENTLY_FAILED,
    STATUS_SENT,
)
from grant_notify.core.errors import truncate_error_message
from grant_notify.models.committee import UserProfile
from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.models.notification_event import NotificationEvent
from grant_notify.models.push_subscription import PushSubscription
from grant_notify.services.channels import RenderedMessage, SendResult, get_adapter
from grant_notify.services.channels.base import ChannelAdapter
from grant_notify.services.notifications.completion import finalize_events
from grant_notify.services.notifications.types import DrainResult

logger = logging.getLogger(__name__)

MSG_EVENT_MISSING = "Notification event no longer exists."
MSG_SUBSCRIPTION_INACTIVE = "Push subscription is inactive."
MSG_ATTEMPTS_EXHAUSTED = "Delivery attempts exhausted without a recorded outcome."

# Snapshot of a due row taken before any commit (commits expire ORM instances).
DueDelivery = namedtuple("DueDelivery", "id event_id endpoint subscription_id attempt_count")


@dataclass(frozen=True)
class Transition:
    status: str
    attempt_count: int
    next_attempt_at: datetime | None
    last_error: str | None


def backoff_delay_minutes(attempt_count: int, cap_minutes: int | None = None) -> int:
    """Minutes to wait after the attempt_count-th failure: 1, 2, 4, 8, 16, 32, 60, 60, ..."""
    cap = settings.delivery_backoff_cap_minutes if cap_minutes is None else cap_minutes
    return min(cap, 2 ** max(0, attempt_count - 1))


def next_transition(
    attempt_count: int,
    result: SendResult,
    now: datetime,
    max_attempts: int | None = None,
    cap_minutes: int | None = None,
) -> Transition:
    """
    Pure state machine step for one attempt. *attempt_count* is the count before this attempt.
    Permanent and transient never mix: a permanent result is terminal regardless of budget,
    a transient one is never permanently_failed.
    """
    max_attempts = settings.delivery_max_attempts if max_attempts is None else max_attempts
    attempts = attempt_count + 1
    if result.ok:
        return Transition(STATUS_SENT, attempts, None, None)
    error = truncate_error_message(result.error_message or "Delivery failed.")
    if result.permanent:
        return Transition(STATUS_PERMANENTLY_FAILED, attempts, None, error)
    if attempts >= max_attempts:
        return Transition(STATUS_FAILED, attempts, None, error)
    retry_at = now + timedelta(minutes=backoff_delay_minutes(attempts, cap_minutes))
    return Transition(STATUS_PENDING, attempts, retry_at, error)


def _clamp_limit(limit: int | None) -> int:
    if limit is None:
        limit = settings.drain_default_limit
    return max(1, min(settings.drain_max_limit, int(limit)))


def _send_interval_ms(channel: str) -> int:
    if channel == CHANNEL_EMAIL:
        return settings.email_send_interval_ms
    return settings.push_send_interval_ms


def _lease_until(now: datetime) -> datetime:
    """Lease end for a claim taken right now. A pass can outlive its start time by minutes."""
    claim_at = max(now, datetime.now(timezone.utc))
    return claim_at + timedelta(seconds=settings.delivery_claim_seconds)


def _claim(db: Session, delivery_id: int, now: datetime, lease_until: datetime) -> bool:
    """
    Take the row for this pass: only succeeds while it is still pending and due.
    The claim counts as an attempt, so a send that kills the worker every time still
    runs out of attempts.
    """
    claimed = (
        db.query(NotificationDelivery)
        .filter(
            NotificationDelivery.id == delivery_id,
            NotificationDelivery.status == STATUS_PENDING,
            NotificationDelivery.next_attempt_at <= now,
        )
        .update(
            {
                NotificationDelivery.next_attempt_at: lease_until,
                NotificationDelivery.attempt_count: NotificationDelivery.attempt_count + 1,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return claimed == 1


def _write_outcome(
    db: Session,
    delivery_id: int,
    transition: Transition,
    now: datetime,
    result: SendResult | None = None,
) -> bool:
    """Persist one transition, conditional on the row still being pending."""
    values = {
        NotificationDelivery.status: transition.status,
        NotificationDelivery.attempt_count: transition.attempt_count,
        NotificationDelivery.last_attempt_at: now,
        NotificationDelivery.last_error: transition.last_error,
    }
    if transition.next_attempt_at is not None:
        values[NotificationDelivery.next_attempt_at] = transition.next_attempt_at
    if transition.status == STATUS_SENT:
        values[NotificationDelivery.sent_at] = now
    if result is not None:
        values[NotificationDelivery.last_response_code] = result.status_code
        if result.provider_message_id:
            values[NotificationDelivery.provider_message_id] = result.provider_message_id
    updated = (
        db.query(NotificationDelivery)
        .filter(NotificationDelivery.id == delivery_id, NotificationDelivery.status == STATUS_PENDING)
        .update(values, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def _render(event: NotificationEvent, bcc: list[str]) -> RenderedMessage:
    return RenderedMessage(
        event_id=event.id,
        event_type=event.event_type,
        title=event.title,
        body=event.body,
        html_body=event.html_body,
        link_path=event.link_path or "/",
        payload=dict(event.payload or {}),
        bcc=bcc,
    )


def _oversight_bcc(db: Session) -> list[str]:
    if not settings.email_bcc_oversight:
        return []
    rows = db.query(UserProfile.email).filter(UserProfile.role == ROLE_OVERSIGHT).all()
    return sorted({(r.email or "").strip() for r in rows if (r.email or "").strip()})


def process_pending_deliveries(
    db: Session,
    channel: str,
    limit: int | None = None,
    event_id: int | None = None,
    now: datetime | None = None,
    adapter: ChannelAdapter | None = None,
) -> DrainResult:
    """
    Drain one pass of due deliveries for *channel*. Returns structured counts.
    Missing provider credentials make the whole pass a no-op with config_missing=True.
    """
    adapter = adapter or get_adapter(channel)
    if not adapter.is_configured():
        logger.warning("%s channel not configured; skipping drain", channel)
        return DrainResult(channel=channel, config_missing=True)

    limit = _clamp_limit(limit)
    now = now or datetime.now(timezone.utc)
    q = db.query(NotificationDelivery).filter(
        NotificationDelivery.channel == channel,
        NotificationDelivery.status == STATUS_PENDING,
        NotificationDelivery.next_attempt_at <= now,
    )
    if event_id is not None:
        q = q.filter(NotificationDelivery.event_id == event_id)
    rows = q.order_by(NotificationDelivery.next_attempt_at.asc(), NotificationDelivery.id.asc()).limit(limit).all()
    result = DrainResult(channel=channel)
    if not rows:
        return result

    due = [DueDelivery(r.id, r.event_id, r.endpoint, r.subscription_id, r.attempt_count) for r in rows]
    event_ids = {d.event_id for d in due if d.event_id is not None}
    bcc = _oversight_bcc(db) if channel == CHANNEL_EMAIL else []
    messages = {
        e.id: _render(e, bcc)
        for e in db.query(NotificationEvent).filter(NotificationEvent.id.in_(event_ids)).all()
    }
    active_subscriptions: set[int] = set()
    if channel == CHANNEL_PUSH:
        sub_ids = {d.subscription_id for d in due if d.subscription_id is not None}
        if sub_ids:
            active_subscriptions = {
                s.id
                for s in db.query(PushSubscription.id).filter(
                    PushSubscription.id.in_(sub_ids), PushSubscription.is_active.is_(True)
                )
            }

    interval = _send_interval_ms(channel) / 1000.0
    touched: set[int] = set()
    sends = 0

    for d in due:
        if d.event_id is not None:
            touched.add(d.event_id)
        if not _claim(db, d.id, now, _lease_until(now)):
            result.contended += 1
            continue
        result.processed += 1

        if d.attempt_count >= settings.delivery_max_attempts:
            # every earlier claim ended without an outcome (worker died mid-send)
            _write_outcome(db, d.id, Transition(STATUS_FAILED, d.attempt_count + 1, None, MSG_ATTEMPTS_EXHAUSTED), now)
            result.failed += 1
            logger.warning("Delivery %s abandoned after %s interrupted attempts", d.id, d.attempt_count)
            continue

        message = messages.get(d.event_id)
        if message is None:
            _write_outcome(db, d.id, Transition(STATUS_FAILED, d.attempt_count + 1, None, MSG_EVENT_MISSING), now)
            result.skipped += 1
            continue
        if channel == CHANNEL_PUSH and d.subscription_id not in active_subscriptions:
            _write_outcome(
                db, d.id, Transition(STATUS_PERMANENTLY_FAILED, d.attempt_count + 1, None, MSG_SUBSCRIPTION_INACTIVE), now
            )
            result.skipped += 1
            continue

        if sends and interval > 0:
            time.sleep(interval)
        sends += 1
        try:
            send_result = adapter.send(d.endpoint, message)
        except Exception as e:  # adapter bug or unexpected transport error: retry like any transient failure
            logger.warning("Adapter %s raised for delivery %s: %s", channel, d.id, e, exc_info=True)
            send_result = SendResult.transient(f"Unexpected send error: {e}")

        transition = next_transition(d.attempt_count, send_result, now)
        if not _write_outcome(db, d.id, transition, now, send_result):
            logger.warning("Delivery %s left pending state during send; outcome %s dropped", d.id, transition.status)
            continue

        if transition.status == STATUS_SENT:
            result.sent += 1
        elif transition.status == STATUS_PERMANENTLY_FAILED:
            result.permanent_failures += 1
            if channel == CHANNEL_PUSH and d.subscription_id is not None:
                db.query(PushSubscription).filter(PushSubscription.id == d.subscription_id).update(
                    {PushSubscription.is_active: False}, synchronize_session=False
                )
                db.commit()
                active_subscriptions.discard(d.subscription_id)
                logger.info("Deactivated push subscription %s after permanent failure", d.subscription_id)
        elif transition.status == STATUS_FAILED:
            result.failed += 1
            logger.warning("Delivery %s failed after %s attempts: %s", d.id, transition.attempt_count, transition.last_error)
        else:
            result.pending_retries += 1

    result.finalized_event_ids = finalize_events(db, touched, now)
    logger.info(
        "Drain %s: processed=%s sent=%s failed=%s permanent=%s retries=%s skipped=%s contended=%s",
        channel, result.processed, result.sent, result.failed, result.permanent_failures,
        result.pending_retries, result.skipped, result.contended,
    )
    return result


def process_all_channels(
    db: Session,
    limit: int | None = None,
    event_id: int | None = None,
    now: datetime | None = None,
) -> dict[str, DrainResult]:
    """One pass per channel (push, then email)."""
    return {
        channel: process_pending_deliveries(db, channel, limit=limit, event_id=event_id, now=now)
        for channel in (CHANNEL_PUSH, CHANNEL_EMAIL)
    }
