"""
Worker and cron endpoints: drain deliveries, run the scheduled email jobs, preview the digest.

Called by an external cron (Authorization: Bearer <secret>) or by an oversight/admin user.
"""
import logging
from dataclasses import asdict
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from grant_notify.api.deps import require_worker
from grant_notify.db.session import get_db
from grant_notify.services.notifications.worker import process_all_channels, process_pending_deliveries
from grant_notify.services.scheduled import preview_daily_digest, run_daily_digest, run_weekly_reminder

router = APIRouter(dependencies=[Depends(require_worker)])
logger = logging.getLogger(__name__)


class ProcessBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel: Literal["push", "email"] | None = Field(None, description="Omit to drain both channels")
    limit: int | None = Field(None, ge=1, le=1000, description="Clamped to DRAIN_MAX_LIMIT")
    event_id: int | None = Field(None, alias="eventId")


class RemindersBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ignore_time_window: bool = Field(False, alias="ignoreTimeWindow")
    force_send: bool = Field(False, alias="forceSend")


@router.post("/process")
def process_deliveries(
    body: ProcessBody | None = Body(None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    body = body or ProcessBody()
    if body.channel:
        drained = {body.channel: process_pending_deliveries(db, body.channel, limit=body.limit, event_id=body.event_id)}
    else:
        drained = process_all_channels(db, limit=body.limit, event_id=body.event_id)
    results = {channel: asdict(result) for channel, result in drained.items()}
    return {"ok": True, "results": results}


def _run_reminders(db: Session, body: RemindersBody) -> dict[str, Any]:
    weekly = run_weekly_reminder(db)
    daily = run_daily_digest(db, ignore_time_window=body.ignore_time_window, force_send=body.force_send)
    return {"ok": True, "weekly": asdict(weekly), "daily": asdict(daily)}


@router.get("/reminders")
def run_reminders_get(db: Session = Depends(get_db)) -> dict[str, Any]:
    """Cron entry point (GET). Never bypasses the time window."""
    return _run_reminders(db, RemindersBody())


@router.post("/reminders")
def run_reminders_post(
    body: RemindersBody | None = Body(None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return _run_reminders(db, body or RemindersBody())


@router.get("/digest/preview")
def digest_preview(db: Session = Depends(get_db)) -> dict[str, Any]:
    return preview_daily_digest(db)
