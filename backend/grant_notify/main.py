"""
FastAPI app entrypoint.

Notification delivery service for the grant committee: preferences, push registration,
worker/cron triggers. With SCHEDULER_ENABLED the drains and email jobs also run in-process.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from grant_notify.api.routes import preferences, worker
from grant_notify.config import settings
from grant_notify.core.constants import (
    DRAIN_INTERVAL_SECONDS,
    EMAIL_DRAIN_JOB_ID,
    PUSH_DRAIN_JOB_ID,
    REMINDERS_INTERVAL_MINUTES,
    REMINDERS_JOB_ID,
)
from grant_notify.core.errors import NotificationError, notification_error_to_http
from grant_notify.core.logging import setup_logging
from grant_notify.scheduler.delivery_job import run_email_delivery_job, run_push_delivery_job
from grant_notify.scheduler.reminder_job import run_scheduled_email_jobs
from grant_notify.services.channels import get_adapter, list_channels

setup_logging()
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.scheduler_enabled:
        _scheduler.add_job(
            run_push_delivery_job,
            "interval",
            seconds=DRAIN_INTERVAL_SECONDS,
            id=PUSH_DRAIN_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        _scheduler.add_job(
            run_email_delivery_job,
            "interval",
            seconds=DRAIN_INTERVAL_SECONDS,
            id=EMAIL_DRAIN_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        _scheduler.add_job(
            run_scheduled_email_jobs,
            "interval",
            minutes=REMINDERS_INTERVAL_MINUTES,
            id=REMINDERS_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info("Scheduler started: drains every %ss, email jobs every %s min", DRAIN_INTERVAL_SECONDS, REMINDERS_INTERVAL_MINUTES)
    for channel in list_channels():
        if not get_adapter(channel).is_configured():
            logger.warning("%s channel is not configured; its deliveries stay pending", channel)
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Grant Committee Notifications", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the committee web app
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotificationError)
async def notification_error_handler(request: Request, exc: NotificationError):
    http_exc = notification_error_to_http(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


app.include_router(preferences.router, prefix="/notifications", tags=["preferences"])
app.include_router(worker.router, prefix="/notifications", tags=["worker"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Grant Committee Notifications", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "channels": {channel: get_adapter(channel).is_configured() for channel in list_channels()},
    }
