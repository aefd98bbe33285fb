"""
Centralized error handling for the notification service.
Exception types raised by services plus a reusable helper so routes stay thin.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

from grant_notify.core.constants import MAX_ERROR_MESSAGE_LENGTH

# ---------------------------------------------------------------------------
# Exception types
# ---------------------------------------------------------------------------


class NotificationError(Exception):
    """Base class for errors raised by the notification pipeline."""


class InvalidNotificationError(NotificationError, ValueError):
    """Caller bug: missing content, unknown event type, wrong channel. Never enqueued."""


class WorkerAuthError(NotificationError):
    """Worker/cron endpoint called without a valid secret or privileged role."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_INTERNAL_ERROR = 500


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code). First match wins.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_caller_error(exc: Exception) -> bool:
    return isinstance(exc, InvalidNotificationError)


def _worker_auth_status(exc: Exception) -> bool:
    return isinstance(exc, WorkerAuthError)


NOTIFICATION_ERROR_RULES: list[tuple[Callable[[Exception], bool], int | None]] = [
    (_is_caller_error, STATUS_BAD_REQUEST),
    (_worker_auth_status, None),  # status taken from the exception
]


def notification_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a notification service call into an HTTPException.
    Uses NOTIFICATION_ERROR_RULES for known error types; otherwise returns 500 with the message.
    """
    for predicate, status_code in NOTIFICATION_ERROR_RULES:
        if predicate(exc):
            code = status_code if status_code is not None else getattr(exc, "status_code", STATUS_INTERNAL_ERROR)
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))


def truncate_error_message(message: str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    """Cap provider error text before it is stored on a delivery row."""
    message = message or ""
    return message if len(message) <= limit else f"{message[: limit - 3]}..."
