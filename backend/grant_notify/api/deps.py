"""
Request dependencies: caller identity and worker authorization.

Users are identified by the X-User-Id header set by the committee app's gateway.
Worker routes (drain, scheduled jobs, digest preview) accept either
Authorization: Bearer <WORKER_SECRET|CRON_SECRET> or an oversight/admin user.
"""
import hmac

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from grant_notify.config import settings
from grant_notify.core.constants import WORKER_ROLES
from grant_notify.core.errors import WorkerAuthError, notification_error_to_http
from grant_notify.db.session import get_db
from grant_notify.models.committee import UserProfile


def current_user_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required.")
    return user_id


def _bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def has_worker_secret(authorization: str | None) -> bool:
    token = _bearer_token(authorization)
    if not token:
        return False
    secrets = [s for s in (settings.worker_secret, settings.cron_secret) if s]
    return any(hmac.compare_digest(token, s) for s in secrets)


def authorize_worker(db: Session, authorization: str | None, user_id: str | None) -> None:
    """Raise WorkerAuthError unless the caller holds a worker secret or a privileged role."""
    if has_worker_secret(authorization):
        return
    uid = (user_id or "").strip()
    if not uid:
        raise WorkerAuthError("Worker secret or privileged user required.", status_code=401)
    user = db.get(UserProfile, uid)
    if user is None or user.role not in WORKER_ROLES:
        raise WorkerAuthError("Only oversight or admin users can run notification jobs.", status_code=403)


def require_worker(
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> None:
    try:
        authorize_worker(db, authorization, x_user_id)
    except WorkerAuthError as e:
        raise notification_error_to_http(e) from e
