"""
Notification preferences and push subscriptions (the preference store and reachability).

Fail-open: a user without a notification_preferences row gets every flag enabled.
"""
import logging
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from grant_notify.core.errors import InvalidNotificationError
from grant_notify.db.upsert import dialect_insert
from grant_notify.models.committee import UserProfile
from grant_notify.models.notification_preference import NotificationPreference
from grant_notify.models.push_subscription import PushSubscription
from grant_notify.services.notifications.types import CHANNEL_FLAG, unique_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPreferences:
    push_enabled: bool = True
    email_enabled: bool = True
    proposal_created: bool = True
    proposal_ready_for_meeting: bool = True
    proposal_status_changed: bool = True
    policy_update_published: bool = True
    proposal_approved_for_admin: bool = True
    action_required: bool = True
    weekly_action_reminder: bool = True
    proposal_sent_fyi: bool = True

    @classmethod
    def from_row(cls, row: NotificationPreference) -> "NotificationPreferences":
        return cls(**{f: bool(getattr(row, f)) for f in PREFERENCE_FIELDS})

    def allows(self, channel: str, event_type: str) -> bool:
        """Channel flag and event-type flag must both be on. Types without a flag are allowed."""
        if not getattr(self, CHANNEL_FLAG[channel]):
            return False
        return bool(getattr(self, event_type, True))

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


PREFERENCE_FIELDS = tuple(f.name for f in fields(NotificationPreferences))
DEFAULT_PREFERENCES = NotificationPreferences()


def load_preferences(db: Session, user_ids: list[str]) -> dict[str, NotificationPreferences]:
    """Preferences for every id in *user_ids*; ids without a row get DEFAULT_PREFERENCES."""
    ids = unique_ids(user_ids)
    if not ids:
        return {}
    mapped = {uid: DEFAULT_PREFERENCES for uid in ids}
    rows = db.query(NotificationPreference).filter(NotificationPreference.user_id.in_(ids)).all()
    for row in rows:
        mapped[row.user_id] = NotificationPreferences.from_row(row)
    return mapped


def get_notification_preferences(db: Session, user_id: str) -> dict:
    """Preferences plus reachability for one user (defaults when no row exists)."""
    row = db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()
    preferences = NotificationPreferences.from_row(row) if row else DEFAULT_PREFERENCES
    active_subscriptions = (
        db.query(PushSubscription)
        .filter(PushSubscription.user_id == user_id, PushSubscription.is_active.is_(True))
        .count()
    )
    user = db.get(UserProfile, user_id)
    return {
        "preferences": preferences.to_dict(),
        "has_active_subscription": active_subscriptions > 0,
        "has_email": bool(user and (user.email or "").strip()),
    }


def update_notification_preferences(db: Session, user_id: str, patch: dict) -> dict[str, bool]:
    """
    Patch semantics: only keys present in *patch* change. Upserts on user_id, so the first
    write creates the row with every other flag at its default (enabled).
    """
    unknown = sorted(set(patch) - set(PREFERENCE_FIELDS))
    if unknown:
        raise InvalidNotificationError(f"Unknown preference field(s): {', '.join(unknown)}")
    updates = {}
    for key, value in patch.items():
        if value is None:
            continue
        if not isinstance(value, bool):
            raise InvalidNotificationError(f"{key} must be a boolean.")
        updates[key] = value
    if updates:
        stmt = dialect_insert(db, NotificationPreference).values(user_id=user_id, **updates)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={**updates, "updated_at": datetime.now(timezone.utc)},
        )
        db.execute(stmt)
        db.commit()
    return get_notification_preferences(db, user_id)["preferences"]


def save_push_subscription(
    db: Session,
    user_id: str,
    device_token: str,
    platform: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Register a device for push. Idempotent: same token is upserted, reactivated and
    re-owned by *user_id* (a device that changes hands follows its new user).
    """
    token = (device_token or "").strip()
    if not token:
        raise InvalidNotificationError("Device token is required.")
    now = datetime.now(timezone.utc)
    values = {
        "user_id": user_id,
        "device_token": token,
        "platform": (platform or "").strip() or "ios",
        "user_agent": (user_agent or "").strip()[:512] or None,
        "is_active": True,
        "last_seen_at": now,
    }
    stmt = dialect_insert(db, PushSubscription).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["device_token"],
        set_={k: v for k, v in values.items() if k != "device_token"} | {"updated_at": now},
    )
    db.execute(stmt)
    db.commit()
    logger.info("Saved push subscription for user %s (platform=%s)", user_id, values["platform"])


def deactivate_push_subscription(db: Session, user_id: str, device_token: str | None = None) -> int:
    """Deactivate one (by token) or all of a user's active subscriptions. Returns rows changed."""
    q = db.query(PushSubscription).filter(
        PushSubscription.user_id == user_id,
        PushSubscription.is_active.is_(True),
    )
    token = (device_token or "").strip()
    if token:
        q = q.filter(PushSubscription.device_token == token)
    updated = q.update({PushSubscription.is_active: False}, synchronize_session=False)
    db.commit()
    return updated


def list_user_ids_by_roles(db: Session, roles: list[str]) -> list[str]:
    """Committee user ids holding any of *roles* (recipient lists for role-wide events)."""
    if not roles:
        return []
    rows = db.query(UserProfile.id).filter(UserProfile.role.in_(roles)).order_by(UserProfile.id).all()
    return unique_ids(r.id for r in rows)
