"""
Daily sent digest: from DAILY_DIGEST_HOUR in REFERENCE_TIMEZONE, one shared email listing
proposals marked Sent today plus approved proposals still waiting to be sent.

"Today" = audit_log rows (meeting_decision_sent / proposal) from the last
DIGEST_LOOKBACK_HOURS whose local calendar day equals the day key. One digest per day,
deduped on email_daily_digests.day_key. Manual runs (ignore_time_window / force_send)
skip the audit entirely and use a one-off key so they can be repeated for testing.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from grant_notify.config import settings
from grant_notify.core.constants import (
    AUDIT_ACTION_PROPOSAL_SENT,
    AUDIT_ENTITY_PROPOSAL,
    REASON_DUPLICATE,
)
from grant_notify.db.upsert import dialect_insert
from grant_notify.models.committee import AuditLogEntry, GrantProposal
from grant_notify.models.scheduled_audit import DailyDigestAudit
from grant_notify.services.email_content import build_sent_digest_content
from grant_notify.services.notifications.enqueue import enqueue_event
from grant_notify.services.notifications.preferences import list_user_ids_by_roles
from grant_notify.services.notifications.types import unique_ids
from grant_notify.services.outstanding import load_approved_unsent, proposal_title
from grant_notify.services.scheduled.local_time import (
    as_utc,
    iso_date_key,
    local_time_snapshot,
)

logger = logging.getLogger(__name__)

EVENT_SENT_DIGEST = "proposal_sent_fyi"
DIGEST_LINK_PATH = "/dashboard"


@dataclass
class DailyDigestResult:
    due_for_window: bool = False
    day_key: str | None = None
    sent_events_found: int = 0
    proposals_included: int = 0
    outstanding_included: int = 0
    digest_queued: int = 0
    skipped_no_events: int = 0
    skipped_wrong_local_time: int = 0
    skipped_already_sent: int = 0
    reason: str | None = None
    event_id: int | None = None


@dataclass
class DigestSnapshot:
    day_key: str
    sent_events_found: int
    sent: list[dict] = field(default_factory=list)
    outstanding: list[dict] = field(default_factory=list)


def _local_day_key(value: datetime) -> str | None:
    snapshot = local_time_snapshot(value, settings.reference_timezone)
    return iso_date_key(snapshot.day) if snapshot else None


def collect_digest(db: Session, now: datetime, day_key: str) -> DigestSnapshot:
    """Sent-today proposals (sorted by title) and approved-unsent proposals for *day_key*."""
    lookback_start = as_utc(now) - timedelta(hours=settings.digest_lookback_hours)
    rows = (
        db.query(AuditLogEntry)
        .filter(
            AuditLogEntry.action == AUDIT_ACTION_PROPOSAL_SENT,
            AuditLogEntry.entity_type == AUDIT_ENTITY_PROPOSAL,
            AuditLogEntry.created_at >= lookback_start,
        )
        .order_by(AuditLogEntry.created_at.asc(), AuditLogEntry.id.asc())
        .all()
    )
    sent_today = [r for r in rows if r.entity_id and _local_day_key(r.created_at) == day_key]
    proposal_ids = unique_ids(r.entity_id for r in sent_today)

    sent: list[dict] = []
    if proposal_ids:
        proposals = db.query(GrantProposal).filter(GrantProposal.id.in_(proposal_ids)).all()
        sent = sorted(
            (
                {
                    "id": p.id,
                    "title": proposal_title(p),
                    "sent_on": _local_day_key(p.sent_at) if p.sent_at else None,
                }
                for p in proposals
            ),
            key=lambda item: item["title"],
        )
    outstanding = [
        {"id": p.id, "title": proposal_title(p)}
        for p in load_approved_unsent(db)
        if p.id not in proposal_ids
    ]
    return DigestSnapshot(day_key=day_key, sent_events_found=len(sent_today), sent=sent, outstanding=outstanding)


def run_daily_digest(
    db: Session,
    now: datetime | None = None,
    ignore_time_window: bool = False,
    force_send: bool = False,
) -> DailyDigestResult:
    now = now or datetime.now(timezone.utc)
    manual = ignore_time_window or force_send
    result = DailyDigestResult()

    snapshot = local_time_snapshot(now, settings.reference_timezone)
    if snapshot is None or (not ignore_time_window and snapshot.hour < settings.daily_digest_hour):
        result.skipped_wrong_local_time = 1
        return result
    result.due_for_window = True
    day_key = iso_date_key(snapshot.day)
    result.day_key = day_key

    if not manual and db.query(DailyDigestAudit.id).filter(DailyDigestAudit.day_key == day_key).first():
        result.skipped_already_sent = 1
        result.reason = REASON_DUPLICATE
        return result

    digest = collect_digest(db, now, day_key)
    result.sent_events_found = digest.sent_events_found
    if not digest.sent and not force_send:
        result.skipped_no_events = 1
        return result

    result.proposals_included = len(digest.sent)
    result.outstanding_included = len(digest.outstanding)
    key = f"proposal-sent-digest:{day_key}"
    if manual:
        key = f"{key}:manual:{uuid.uuid4()}"
    content = build_sent_digest_content(day_key, digest.sent, digest.outstanding, settings.reference_timezone)
    queued = enqueue_event(
        db,
        EVENT_SENT_DIGEST,
        list_user_ids_by_roles(db, settings.digest_role_list),
        key,
        content,
        link_path=DIGEST_LINK_PATH,
        payload={
            "dayKey": day_key,
            "sentProposalIds": [p["id"] for p in digest.sent],
            "outstandingProposalIds": [p["id"] for p in digest.outstanding],
        },
    )
    result.event_id = queued.event_id
    result.reason = queued.reason
    if queued.enqueued:
        result.digest_queued = 1
    elif queued.reason == REASON_DUPLICATE:
        result.skipped_already_sent = 1

    if not manual and (queued.enqueued or queued.reason == REASON_DUPLICATE):
        db.execute(
            dialect_insert(db, DailyDigestAudit)
            .values(day_key=day_key)
            .on_conflict_do_nothing(index_elements=["day_key"])
        )
        db.commit()
    logger.info(
        "Daily digest %s: sent=%s outstanding=%s queued=%s manual=%s reason=%s",
        day_key, result.proposals_included, result.outstanding_included, result.digest_queued, manual, result.reason,
    )
    return result


def preview_daily_digest(db: Session, now: datetime | None = None) -> dict:
    """What today's digest would contain, without enqueueing or touching the audit table."""
    now = now or datetime.now(timezone.utc)
    snapshot = local_time_snapshot(now, settings.reference_timezone)
    if snapshot is None:
        return {"time_zone": settings.reference_timezone, "day_key": None, "sent": [], "outstanding": []}
    day_key = iso_date_key(snapshot.day)
    digest = collect_digest(db, now, day_key)
    return {
        "time_zone": settings.reference_timezone,
        "day_key": day_key,
        "due_for_window": snapshot.hour >= settings.daily_digest_hour,
        "already_sent": db.query(DailyDigestAudit.id).filter(DailyDigestAudit.day_key == day_key).first() is not None,
        "sent_events_found": digest.sent_events_found,
        "sent": digest.sent,
        "outstanding": digest.outstanding,
        "recipient_count": len(list_user_ids_by_roles(db, settings.digest_role_list)),
    }
