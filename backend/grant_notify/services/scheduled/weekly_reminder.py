"""
Weekly action reminder: Tuesday from WEEKLY_REMINDER_HOUR in REFERENCE_TIMEZONE.

Users with outstanding actions or own proposals waiting on others get one personalised
email per ISO week. email_weekly_reminders (user_id, week_key) is checked in bulk before
any content is rendered; the audit row is written once the event is enqueued (or was
already enqueued under the same key).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from grant_notify.config import settings
from grant_notify.core.constants import REASON_DUPLICATE, WEEKDAY_TUESDAY
from grant_notify.db.upsert import dialect_insert
from grant_notify.models.scheduled_audit import WeeklyReminderAudit
from grant_notify.services.email_content import build_weekly_reminder_content, weekly_reminder_link_path
from grant_notify.services.notifications.enqueue import enqueue_event
from grant_notify.services.outstanding import display_name, load_outstanding_state
from grant_notify.services.scheduled.local_time import iso_week_key, local_time_snapshot

logger = logging.getLogger(__name__)

EVENT_WEEKLY_REMINDER = "weekly_action_reminder"


@dataclass
class WeeklyReminderResult:
    evaluated_users: int = 0
    due_users: int = 0
    reminders_queued: int = 0
    skipped_no_actions: int = 0
    skipped_wrong_local_time: int = 0
    skipped_already_sent: int = 0
    week_key: str | None = None


def is_weekly_reminder_due(now: datetime) -> bool:
    snapshot = local_time_snapshot(now, settings.reference_timezone)
    return bool(snapshot and snapshot.weekday == WEEKDAY_TUESDAY and snapshot.hour >= settings.weekly_reminder_hour)


def run_weekly_reminder(db: Session, now: datetime | None = None) -> WeeklyReminderResult:
    now = now or datetime.now(timezone.utc)
    state = load_outstanding_state(db)
    result = WeeklyReminderResult(evaluated_users=len(state.users_by_id))

    snapshot = local_time_snapshot(now, settings.reference_timezone)
    if not is_weekly_reminder_due(now):
        result.skipped_wrong_local_time = result.evaluated_users
        return result
    week_key = iso_week_key(snapshot.day)
    result.week_key = week_key

    candidates = []
    for user in state.users_by_id.values():
        actions = state.actions_by_user_id.get(user.id, [])
        own_updates = state.own_updates_by_user_id.get(user.id, [])
        if not actions and not own_updates:
            result.skipped_no_actions += 1
            continue
        result.due_users += 1
        candidates.append((user, actions, own_updates))
    if not candidates:
        return result

    already_sent = {
        row.user_id
        for row in db.query(WeeklyReminderAudit.user_id).filter(
            WeeklyReminderAudit.week_key == week_key,
            WeeklyReminderAudit.user_id.in_([user.id for user, _, _ in candidates]),
        )
    }

    for user, actions, own_updates in candidates:
        if user.id in already_sent:
            result.skipped_already_sent += 1
            continue
        content = build_weekly_reminder_content(display_name(user), actions, own_updates)
        queued = enqueue_event(
            db,
            EVENT_WEEKLY_REMINDER,
            [user.id],
            f"weekly-action-reminder:{user.id}:{week_key}",
            content,
            link_path=weekly_reminder_link_path(actions, own_updates),
            payload={"weekKey": week_key, "reminderTimeZone": settings.reference_timezone},
        )
        if queued.enqueued or queued.reason == REASON_DUPLICATE:
            db.execute(
                dialect_insert(db, WeeklyReminderAudit)
                .values(user_id=user.id, week_key=week_key)
                .on_conflict_do_nothing(index_elements=["user_id", "week_key"])
            )
            db.commit()
            already_sent.add(user.id)
            result.reminders_queued += 1

    logger.info(
        "Weekly reminder %s: evaluated=%s due=%s queued=%s already_sent=%s",
        week_key, result.evaluated_users, result.due_users, result.reminders_queued, result.skipped_already_sent,
    )
    return result
