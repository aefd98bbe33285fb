"""HTTP tests: health, preferences, push registration and worker endpoints."""
from conftest import WORKER_AUTH, FakeAdapter

from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.services.channels import registry
from grant_notify.services.notifications.enqueue import enqueue_event
from grant_notify.services.notifications.types import NotificationContent


def _as(user_id):
    return {"X-User-Id": user_id}


class TestHealth:
    def test_health_reports_channel_config(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok", "channels": {"push": False, "email": False}}


class TestPreferencesApi:
    def test_requires_user_header(self, client):
        assert client.get("/notifications/preferences").status_code == 401

    def test_defaults_are_all_enabled(self, client, factory):
        factory.user("alice")

        data = client.get("/notifications/preferences", headers=_as("alice")).json()

        assert all(data["preferences"].values())
        assert data["has_email"] is True
        assert data["has_active_subscription"] is False

    def test_patch_changes_only_sent_keys(self, client, factory):
        factory.user("alice")

        r = client.patch("/notifications/preferences", headers=_as("alice"), json={"push_enabled": False})
        assert r.status_code == 200
        assert r.json()["preferences"]["push_enabled"] is False

        r = client.patch("/notifications/preferences", headers=_as("alice"), json={"weekly_action_reminder": False})
        preferences = r.json()["preferences"]
        assert preferences["push_enabled"] is False
        assert preferences["weekly_action_reminder"] is False
        assert preferences["email_enabled"] is True

    def test_patch_rejects_non_boolean_and_unknown_keys(self, client):
        assert client.patch("/notifications/preferences", headers=_as("alice"), json={"push_enabled": "no"}).status_code == 422
        assert client.patch("/notifications/preferences", headers=_as("alice"), json={"sms_enabled": True}).status_code == 422


class TestPushRegistration:
    def test_subscribe_then_unsubscribe(self, client, factory):
        factory.user("alice")

        r = client.post("/notifications/push/subscribe", headers=_as("alice"), json={"device_token": "abc123"})
        assert r.json() == {"ok": True}
        # same token again is an upsert, not a second device
        client.post("/notifications/push/subscribe", headers=_as("alice"), json={"device_token": "abc123"})
        assert client.get("/notifications/preferences", headers=_as("alice")).json()["has_active_subscription"] is True

        r = client.post("/notifications/push/unsubscribe", headers=_as("alice"), json={"device_token": "abc123"})
        assert r.json() == {"ok": True, "deactivated": 1}
        assert client.get("/notifications/preferences", headers=_as("alice")).json()["has_active_subscription"] is False

    def test_rejects_unknown_platform(self, client):
        r = client.post(
            "/notifications/push/subscribe",
            headers=_as("alice"),
            json={"device_token": "abc123", "platform": "android"},
        )
        assert r.status_code == 422


class TestWorkerAuth:
    def test_anonymous_is_rejected(self, client):
        assert client.post("/notifications/process").status_code == 401

    def test_wrong_secret_is_rejected(self, client):
        r = client.post("/notifications/process", headers={"Authorization": "Bearer nope"})
        assert r.status_code == 401

    def test_member_is_forbidden(self, client, factory):
        factory.user("m1", role="member")
        assert client.post("/notifications/process", headers=_as("m1")).status_code == 403

    def test_oversight_user_is_allowed(self, client, factory):
        factory.user("o1", role="oversight")
        assert client.post("/notifications/process", headers=_as("o1")).status_code == 200


class TestWorkerEndpoints:
    def test_process_reports_config_missing(self, client):
        r = client.post("/notifications/process", headers=WORKER_AUTH)

        results = r.json()["results"]
        assert set(results) == {"push", "email"}
        assert results["push"]["config_missing"] is True
        assert results["email"]["config_missing"] is True

    def test_process_drains_one_channel(self, client, db_session, factory, monkeypatch):
        fake = FakeAdapter("push")
        monkeypatch.setitem(registry._adapters, "push", fake)
        factory.user("alice")
        factory.subscription("alice", "tok-a")
        queued = enqueue_event(
            db_session, "proposal_created", ["alice"], "k-api", NotificationContent(title="T", body="B")
        )

        r = client.post("/notifications/process", headers=WORKER_AUTH, json={"channel": "push", "eventId": queued.event_id})

        assert r.status_code == 200
        push = r.json()["results"]["push"]
        assert (push["processed"], push["sent"]) == (1, 1)
        assert push["finalized_event_ids"] == [queued.event_id]
        assert [endpoint for endpoint, _ in fake.calls] == ["tok-a"]
        db_session.expire_all()
        assert db_session.query(NotificationDelivery).one().status == "sent"

    def test_process_rejects_unknown_channel(self, client):
        r = client.post("/notifications/process", headers=WORKER_AUTH, json={"channel": "sms"})
        assert r.status_code == 422

    def test_reminders_get(self, client):
        r = client.get("/notifications/reminders", headers=WORKER_AUTH)
        data = r.json()
        assert data["ok"] is True
        assert "week_key" in data["weekly"]
        assert "day_key" in data["daily"]

    def test_reminders_post_can_force_a_digest(self, client, factory):
        factory.user("m1")
        factory.proposal("ap1", "m1", status="approved")

        r = client.post(
            "/notifications/reminders",
            headers=WORKER_AUTH,
            json={"ignoreTimeWindow": True, "forceSend": True},
        )

        daily = r.json()["daily"]
        assert daily["digest_queued"] == 1
        assert daily["outstanding_included"] == 1

    def test_digest_preview(self, client, factory):
        factory.user("m1")

        data = client.get("/notifications/digest/preview", headers=WORKER_AUTH).json()

        assert data["time_zone"] == "America/New_York"
        assert data["sent"] == []
        assert data["recipient_count"] == 1
