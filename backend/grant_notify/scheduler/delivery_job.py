"""Runs every DRAIN_INTERVAL_SECONDS: one drain pass per channel, each in its own session."""
import logging

from grant_notify.core.constants import CHANNEL_EMAIL, CHANNEL_PUSH
from grant_notify.db.session import SessionLocal
from grant_notify.services.notifications.worker import process_pending_deliveries

logger = logging.getLogger(__name__)


def _drain(channel: str) -> None:
    db = SessionLocal()
    try:
        process_pending_deliveries(db, channel)
    except Exception as e:
        logger.exception("%s delivery job failed: %s", channel, e)
        db.rollback()
    finally:
        db.close()


def run_push_delivery_job() -> None:
    _drain(CHANNEL_PUSH)


def run_email_delivery_job() -> None:
    _drain(CHANNEL_EMAIL)
