"""Notification preferences and push device registration for the calling user (X-User-Id)."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from sqlalchemy.orm import Session

from grant_notify.api.deps import current_user_id
from grant_notify.core.errors import InvalidNotificationError, notification_error_to_http
from grant_notify.db.session import get_db
from grant_notify.services.notifications.preferences import (
    deactivate_push_subscription,
    get_notification_preferences,
    save_push_subscription,
    update_notification_preferences,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class PreferencesPatch(BaseModel):
    """Only keys sent are changed. Values must be JSON booleans."""

    model_config = ConfigDict(extra="forbid")

    push_enabled: StrictBool | None = None
    email_enabled: StrictBool | None = None
    proposal_created: StrictBool | None = None
    proposal_ready_for_meeting: StrictBool | None = None
    proposal_status_changed: StrictBool | None = None
    policy_update_published: StrictBool | None = None
    proposal_approved_for_admin: StrictBool | None = None
    action_required: StrictBool | None = None
    weekly_action_reminder: StrictBool | None = None
    proposal_sent_fyi: StrictBool | None = None


class SubscribeBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=256, description="APNs device token (hex string)")
    platform: str = Field(default="ios", pattern="^(ios|ipados|macos)$")


class UnsubscribeBody(BaseModel):
    device_token: str | None = Field(None, max_length=256, description="Omit to deactivate every device")


@router.get("/preferences")
def read_preferences(
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    return get_notification_preferences(db, user_id)


@router.patch("/preferences")
def patch_preferences(
    body: PreferencesPatch,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    try:
        preferences = update_notification_preferences(db, user_id, body.model_dump(exclude_unset=True))
    except InvalidNotificationError as e:
        raise notification_error_to_http(e) from e
    return {"ok": True, "preferences": preferences}


@router.post("/push/subscribe")
def subscribe(
    body: SubscribeBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
    user_agent: str | None = Header(None, alias="User-Agent"),
) -> dict[str, Any]:
    """
    Register a device for push. Call from the iOS app after APNs hands out the token.
    Idempotent: the same token is upserted and reactivated.
    """
    try:
        save_push_subscription(db, user_id, body.device_token, platform=body.platform, user_agent=user_agent)
    except InvalidNotificationError as e:
        raise notification_error_to_http(e) from e
    return {"ok": True}


@router.post("/push/unsubscribe")
def unsubscribe(
    body: UnsubscribeBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    deactivated = deactivate_push_subscription(db, user_id, body.device_token)
    return {"ok": True, "deactivated": deactivated}
