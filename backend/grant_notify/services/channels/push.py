"""
Push channel: Apple Push Notification service (APNs) over HTTP/2.
Requires APNS_KEY_ID, APNS_TEAM_ID, APNS_BUNDLE_ID, and APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64 in env.
If not configured, is_configured() is False and the push drain reports config_missing.
"""
import base64
import logging
import time
from pathlib import Path

import httpx
import jwt

from grant_notify.config import settings
from grant_notify.core.constants import CHANNEL_PUSH
from grant_notify.core.errors import truncate_error_message
from grant_notify.services.channels.base import RenderedMessage, SendResult

logger = logging.getLogger(__name__)

# APNs host: sandbox for dev builds, production for release
APNS_SANDBOX = "https://api.sandbox.push.apple.com"
APNS_PRODUCTION = "https://api.push.apple.com"

_JWT_EXPIRY_SECONDS = 55 * 60  # APNs accepts tokens with iat within the last hour

# Token is gone for good: deactivate the subscription, never retry.
PERMANENT_STATUS_CODES = {404, 410}
PERMANENT_REASONS = {"BadDeviceToken", "DeviceTokenNotForTopic", "Unregistered"}
# Our provider token is stale: drop the cached JWT; the retry builds a fresh one.
PROVIDER_TOKEN_REASONS = {"ExpiredProviderToken", "InvalidProviderToken"}


def classify_apns_response(status_code: int, reason: str | None, apns_id: str | None = None) -> SendResult:
    """Normalize an APNs HTTP response into ok / permanent / transient."""
    if status_code == 200:
        return SendResult.success(provider_message_id=apns_id, status_code=status_code)
    message = truncate_error_message(f"APNs {status_code}: {reason or 'no reason'}")
    if status_code in PERMANENT_STATUS_CODES or reason in PERMANENT_REASONS:
        return SendResult.permanent_failure(message, status_code=status_code)
    # 429, 5xx and any other rejection (payload, auth) may succeed later or exhaust the attempt budget.
    return SendResult.transient(message, status_code=status_code)


class ApnsPushAdapter:
    """Sends one alert push per device token. Builds and caches the ES256 provider JWT."""

    channel = CHANNEL_PUSH

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.adapter_timeout_seconds
        self._jwt_cache: tuple[str, float] | None = None

    def _load_p8_key(self) -> str | None:
        """Load .p8 key from APNS_KEY_P8_BASE64 or APNS_KEY_P8_PATH. Return None if not set."""
        if settings.apns_key_p8_base64:
            try:
                return base64.b64decode(settings.apns_key_p8_base64).decode("utf-8")
            except ValueError as e:
                logger.warning("APNS_KEY_P8_BASE64 decode failed: %s", e)
                return None
        path = settings.apns_key_p8_path
        if path and Path(path).exists():
            try:
                return Path(path).read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("APNS_KEY_P8_PATH read failed: %s", e)
                return None
        return None

    def is_configured(self) -> bool:
        return bool(settings.apns_key_id and settings.apns_team_id and settings.apns_bundle_id and self._load_p8_key())

    def _get_jwt(self) -> str | None:
        """Build and cache JWT for APNs. Returns None if config missing."""
        if not settings.apns_key_id or not settings.apns_team_id:
            return None
        now = time.time()
        if self._jwt_cache and self._jwt_cache[1] > now:
            return self._jwt_cache[0]
        p8 = self._load_p8_key()
        if not p8:
            return None
        try:
            token = jwt.encode(
                {"iss": settings.apns_team_id, "iat": int(now)},
                p8,
                algorithm="ES256",
                headers={"alg": "ES256", "kid": settings.apns_key_id},
            )
        except (jwt.PyJWTError, ValueError) as e:
            logger.warning("APNs JWT build failed: %s", e, exc_info=True)
            return None
        self._jwt_cache = (token, now + _JWT_EXPIRY_SECONDS)
        return token

    def build_payload(self, message: RenderedMessage) -> dict:
        data = dict(message.payload or {})
        data.update({"eventId": message.event_id, "eventType": message.event_type, "linkPath": message.link_path})
        return {
            "aps": {
                "alert": {"title": message.title, "body": message.body},
                "sound": "default",
                "thread-id": message.event_type,
            },
            "data": data,
        }

    def send(self, endpoint: str, message: RenderedMessage) -> SendResult:
        jwt_token = self._get_jwt()
        if not jwt_token:
            return SendResult.transient("APNs provider token unavailable.")
        base_url = APNS_SANDBOX if settings.apns_use_sandbox else APNS_PRODUCTION
        url = f"{base_url}/3/device/{endpoint}"
        headers = {
            "authorization": f"bearer {jwt_token}",
            "apns-topic": settings.apns_bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
            "apns-expiration": str(int(time.time()) + 300),
            "apns-collapse-id": message.tag[:64],
        }
        try:
            with httpx.Client(http2=True, timeout=self.timeout) as client:
                resp = client.post(url, json=self.build_payload(message), headers=headers)
        except httpx.TimeoutException as e:
            return SendResult.transient(truncate_error_message(f"APNs timeout: {e}"))
        except httpx.HTTPError as e:
            return SendResult.transient(truncate_error_message(f"APNs request failed: {e}"))

        reason = None
        if resp.status_code != 200:
            try:
                reason = (resp.json() or {}).get("reason")
            except ValueError:
                reason = resp.text or None
            logger.warning("APNs returned %s for token %s...: %s", resp.status_code, endpoint[:8], reason)
        if reason in PROVIDER_TOKEN_REASONS:
            self._jwt_cache = None
        return classify_apns_response(resp.status_code, reason, resp.headers.get("apns-id"))
