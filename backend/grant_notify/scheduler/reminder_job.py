"""
Runs every REMINDERS_INTERVAL_MINUTES. Both jobs gate themselves on local time and dedupe
through their audit tables, so running often is harmless.
"""
import logging

from grant_notify.db.session import SessionLocal
from grant_notify.services.scheduled import run_daily_digest, run_weekly_reminder

logger = logging.getLogger(__name__)


def run_scheduled_email_jobs() -> None:
    db = SessionLocal()
    try:
        weekly = run_weekly_reminder(db)
        daily = run_daily_digest(db)
        logger.debug("Scheduled email jobs: weekly=%s daily=%s", weekly, daily)
    except Exception as e:
        logger.exception("Scheduled email jobs failed: %s", e)
        db.rollback()
    finally:
        db.close()
