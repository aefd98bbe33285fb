"""Tests for the APNs and SMTP channel adapters (transport mocked)."""
import smtplib
from unittest.mock import patch

import httpx
import pytest

from grant_notify.config import settings
from grant_notify.services.channels import RenderedMessage
from grant_notify.services.channels.email import SmtpEmailAdapter, classify_smtp_error
from grant_notify.services.channels.push import ApnsPushAdapter, classify_apns_response


def _message(**overrides):
    values = {
        "event_id": 7,
        "event_type": "proposal_created",
        "title": "New proposal",
        "body": "Library roof needs votes.",
        "link_path": "/workspace?proposalId=p1",
        "payload": {"proposalId": "p1"},
    }
    values.update(overrides)
    return RenderedMessage(**values)


class TestClassifyApnsResponse:
    def test_success(self):
        result = classify_apns_response(200, None, "apns-123")
        assert result.ok is True
        assert result.provider_message_id == "apns-123"

    @pytest.mark.parametrize("status, reason", [(410, "Unregistered"), (404, None), (400, "BadDeviceToken")])
    def test_token_gone_is_permanent(self, status, reason):
        result = classify_apns_response(status, reason)
        assert (result.ok, result.permanent) == (False, True)
        assert result.status_code == status

    @pytest.mark.parametrize("status, reason", [(429, "TooManyRequests"), (503, "ServiceUnavailable"), (403, "ExpiredProviderToken")])
    def test_everything_else_is_transient(self, status, reason):
        result = classify_apns_response(status, reason)
        assert (result.ok, result.permanent) == (False, False)
        assert reason in result.error_message


class TestApnsPushAdapter:
    @pytest.fixture()
    def adapter(self, monkeypatch):
        monkeypatch.setattr(settings, "apns_bundle_id", "org.example.grants")
        adapter = ApnsPushAdapter(timeout=1)
        monkeypatch.setattr(adapter, "_get_jwt", lambda: "provider-jwt")
        return adapter

    def test_not_configured_without_credentials(self):
        assert ApnsPushAdapter().is_configured() is False

    def test_payload_carries_deep_link(self, adapter):
        payload = adapter.build_payload(_message())
        assert payload["aps"]["alert"] == {"title": "New proposal", "body": "Library roof needs votes."}
        assert payload["data"] == {
            "proposalId": "p1",
            "eventId": 7,
            "eventType": "proposal_created",
            "linkPath": "/workspace?proposalId=p1",
        }

    def test_send_success(self, adapter):
        with patch("grant_notify.services.channels.push.httpx.Client") as client_cls:
            post = client_cls.return_value.__enter__.return_value.post
            post.return_value = httpx.Response(200, headers={"apns-id": "abc-1"})
            result = adapter.send("device-token", _message())

        assert result.ok is True
        assert result.provider_message_id == "abc-1"
        url = post.call_args.args[0]
        headers = post.call_args.kwargs["headers"]
        assert url.endswith("/3/device/device-token")
        assert headers["authorization"] == "bearer provider-jwt"
        assert headers["apns-topic"] == "org.example.grants"
        assert headers["apns-collapse-id"] == "proposal_created:7"

    def test_unregistered_token_is_permanent(self, adapter):
        with patch("grant_notify.services.channels.push.httpx.Client") as client_cls:
            client_cls.return_value.__enter__.return_value.post.return_value = httpx.Response(
                410, json={"reason": "Unregistered"}
            )
            result = adapter.send("device-token", _message())

        assert result.permanent is True
        assert result.status_code == 410

    def test_timeout_is_transient(self, adapter):
        with patch("grant_notify.services.channels.push.httpx.Client") as client_cls:
            client_cls.return_value.__enter__.return_value.post.side_effect = httpx.ReadTimeout("timed out")
            result = adapter.send("device-token", _message())

        assert (result.ok, result.permanent) == (False, False)
        assert "timeout" in result.error_message

    def test_missing_provider_token_is_transient(self, monkeypatch):
        adapter = ApnsPushAdapter()
        monkeypatch.setattr(adapter, "_get_jwt", lambda: None)

        result = adapter.send("device-token", _message())

        assert (result.ok, result.permanent) == (False, False)


class TestClassifySmtpError:
    def test_recipient_refused_5xx_is_permanent(self):
        exc = smtplib.SMTPRecipientsRefused({"a@example.org": (550, b"No such user")})
        result = classify_smtp_error(exc, "a@example.org")
        assert result.permanent is True
        assert result.error_message == "SMTP 550: No such user"

    def test_recipient_refused_4xx_is_transient(self):
        exc = smtplib.SMTPRecipientsRefused({"a@example.org": (451, b"Try later")})
        assert classify_smtp_error(exc, "a@example.org").permanent is False

    def test_auth_failure_is_transient(self):
        exc = smtplib.SMTPAuthenticationError(535, b"Bad credentials")
        result = classify_smtp_error(exc, "a@example.org")
        assert (result.ok, result.permanent) == (False, False)
        assert result.status_code == 535

    def test_message_rejected_5xx_is_permanent(self):
        exc = smtplib.SMTPDataError(554, b"Message rejected")
        assert classify_smtp_error(exc, "a@example.org").permanent is True

    def test_socket_error_is_transient(self):
        result = classify_smtp_error(TimeoutError("timed out"), "a@example.org")
        assert (result.ok, result.permanent) == (False, False)


class TestSmtpEmailAdapter:
    @pytest.fixture()
    def configured(self, monkeypatch):
        monkeypatch.setattr(settings, "smtp_user", "robot@example.org")
        monkeypatch.setattr(settings, "smtp_password", "app-password")

    def test_not_configured_without_credentials(self):
        assert SmtpEmailAdapter().is_configured() is False

    def test_is_configured(self, configured):
        assert SmtpEmailAdapter().is_configured() is True

    def test_send_includes_bcc_in_envelope_only(self, configured):
        message = _message(
            event_type="action_required",
            title="Action required: Library roof",
            html_body="<p>Vote</p>",
            bcc=["olga@example.org", "A@example.org"],
        )
        with patch("grant_notify.services.channels.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.sendmail.return_value = {}
            result = SmtpEmailAdapter().send("a@example.org", message)

        assert result.ok is True
        assert result.status_code == 250
        sender, recipients, raw = server.sendmail.call_args.args
        assert sender == "robot@example.org"
        assert recipients == ["a@example.org", "olga@example.org"]
        assert "Subject: Action required: Library roof" in raw
        assert "olga@example.org" not in raw
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("robot@example.org", "app-password")

    def test_refused_recipient_in_reply(self, configured):
        with patch("grant_notify.services.channels.email.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value.sendmail.return_value = {
                "a@example.org": (550, b"Mailbox unavailable")
            }
            result = SmtpEmailAdapter().send("a@example.org", _message(html_body="<p>x</p>"))

        assert result.permanent is True

    def test_connection_failure_is_transient(self, configured):
        with patch("grant_notify.services.channels.email.smtplib.SMTP", side_effect=ConnectionRefusedError("refused")):
            result = SmtpEmailAdapter().send("a@example.org", _message(html_body="<p>x</p>"))

        assert (result.ok, result.permanent) == (False, False)
