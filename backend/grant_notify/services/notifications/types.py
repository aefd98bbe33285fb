"""Event types, content and result shapes for the notification queue.

Every event type belongs to exactly one channel. Preference columns on
notification_preferences carry the same names as the event types.
"""
from dataclasses import dataclass, field

from grant_notify.core.constants import (
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    MAX_LINK_LABEL_LENGTH,
    MAX_LINK_PATH_LENGTH,
)
from grant_notify.core.errors import InvalidNotificationError

PUSH_EVENT_TYPES = (
    "proposal_created",
    "proposal_ready_for_meeting",
    "proposal_status_changed",
    "policy_update_published",
    "proposal_approved_for_admin",
)

EMAIL_EVENT_TYPES = (
    "action_required",
    "weekly_action_reminder",
    "proposal_sent_fyi",
)

EVENT_TYPE_CHANNEL: dict[str, str] = {
    **{t: CHANNEL_PUSH for t in PUSH_EVENT_TYPES},
    **{t: CHANNEL_EMAIL for t in EMAIL_EVENT_TYPES},
}

CHANNEL_FLAG = {
    CHANNEL_PUSH: "push_enabled",
    CHANNEL_EMAIL: "email_enabled",
}


def channel_for_event_type(event_type: str) -> str:
    """Channel family for *event_type*. Unknown types are a caller bug."""
    try:
        return EVENT_TYPE_CHANNEL[event_type]
    except KeyError:
        raise InvalidNotificationError(f"Unknown notification event type: {event_type!r}") from None


def unique_ids(values) -> list[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values or ():
        v = str(value or "").strip()
        if v:
            seen.setdefault(v, None)
    return list(seen)


def sanitize_link_path(value: str | None) -> str:
    """In-app path only: must start with a single '/'. Anything else becomes '/'."""
    trimmed = (value or "").strip()
    if not trimmed or not trimmed.startswith("/") or trimmed.startswith("//"):
        return "/"
    if len(trimmed) > MAX_LINK_PATH_LENGTH:
        raise InvalidNotificationError(f"Link path must be at most {MAX_LINK_PATH_LENGTH} characters.")
    return trimmed


@dataclass
class NotificationContent:
    """Rendered content. Push uses title/body; email uses title as subject, body as text, html_body."""

    title: str
    body: str
    html_body: str | None = None
    link_label: str | None = None

    @classmethod
    def email(cls, subject: str, html_body: str, text_body: str, link_label: str | None = None) -> "NotificationContent":
        return cls(title=subject, body=text_body, html_body=html_body, link_label=link_label)

    def validated(self, channel: str) -> "NotificationContent":
        title = (self.title or "").strip()
        body = (self.body or "").strip()
        html_body = (self.html_body or "").strip() or None
        if channel == CHANNEL_EMAIL:
            if not title or not body or not html_body:
                raise InvalidNotificationError("Email notification requires subject, html body and text body.")
        elif not title or not body:
            raise InvalidNotificationError("Push notification requires title and body.")
        link_label = (self.link_label or "").strip() or None
        if link_label and len(link_label) > MAX_LINK_LABEL_LENGTH:
            raise InvalidNotificationError(f"Link label must be at most {MAX_LINK_LABEL_LENGTH} characters.")
        return NotificationContent(title=title, body=body, html_body=html_body, link_label=link_label)


@dataclass
class EnqueueResult:
    enqueued: bool
    event_id: int | None = None
    reason: str | None = None  # 'duplicate' | 'no_recipients' when not enqueued
    queued_delivery_count: int = 0


@dataclass
class DrainResult:
    channel: str
    processed: int = 0
    sent: int = 0
    failed: int = 0
    permanent_failures: int = 0
    pending_retries: int = 0
    skipped: int = 0
    contended: int = 0
    config_missing: bool = False
    finalized_event_ids: list[int] = field(default_factory=list)
