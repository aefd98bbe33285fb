import os

# Settings are read once at import time: pin a hermetic environment before any grant_notify import.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BACKGROUND_DRAIN_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["EMAIL_SEND_INTERVAL_MS"] = "0"
os.environ["REFERENCE_TIMEZONE"] = "America/New_York"
for _name in (
    "SMTP_USER",
    "SMTP_PASSWORD",
    "EMAIL_FROM",
    "EMAIL_REPLY_TO",
    "APNS_KEY_ID",
    "APNS_TEAM_ID",
    "APNS_BUNDLE_ID",
    "APNS_KEY_P8_PATH",
    "APNS_KEY_P8_BASE64",
    "CRON_SECRET",
    "APP_BASE_URL",
):
    os.environ[_name] = ""
os.environ["WORKER_SECRET"] = "test-worker-secret"

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import grant_notify.models  # noqa: E402,F401
from grant_notify.db.base import Base  # noqa: E402
from grant_notify.models.committee import AuditLogEntry, GrantProposal, UserProfile, Vote  # noqa: E402
from grant_notify.models.notification_preference import NotificationPreference  # noqa: E402
from grant_notify.models.push_subscription import PushSubscription  # noqa: E402
from grant_notify.services.channels import SendResult  # noqa: E402

WORKER_AUTH = {"Authorization": "Bearer test-worker-secret"}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def naive(value: datetime | None) -> datetime | None:
    """SQLite hands datetimes back without tzinfo; compare on the UTC wall clock."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class FakeAdapter:
    """Records every send and returns scripted results (default: success)."""

    def __init__(self, channel: str, results=None, configured: bool = True):
        self.channel = channel
        self.results = list(results or [])
        self.configured = configured
        self.calls = []

    def is_configured(self) -> bool:
        return self.configured

    def send(self, endpoint, message):
        self.calls.append((endpoint, message))
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return SendResult.success(provider_message_id=f"msg-{len(self.calls)}", status_code=200)


class Factory:
    """Committee and subscription rows for tests."""

    def __init__(self, db):
        self.db = db

    def user(self, user_id, role="member", email=None, full_name=None):
        user = UserProfile(
            id=user_id,
            role=role,
            email=f"{user_id}@example.org" if email is None else email,
            full_name=full_name if full_name is not None else user_id.title(),
        )
        self.db.add(user)
        self.db.commit()
        return user

    def subscription(self, user_id, token=None, active=True):
        sub = PushSubscription(
            user_id=user_id,
            device_token=token or f"token-{user_id}",
            platform="ios",
            is_active=active,
        )
        self.db.add(sub)
        self.db.commit()
        return sub

    def preferences(self, user_id, **flags):
        row = NotificationPreference(user_id=user_id, **flags)
        self.db.add(row)
        self.db.commit()
        return row

    def proposal(self, proposal_id, proposer_id, status="to_review", proposal_type="joint", title=None, created_at=None, sent_at=None):
        proposal = GrantProposal(
            id=proposal_id,
            proposal_title=title or f"Proposal {proposal_id}",
            proposer_id=proposer_id,
            proposal_type=proposal_type,
            status=status,
            created_at=created_at or utc(2026, 1, 5, 12, 0),
            sent_at=sent_at,
        )
        self.db.add(proposal)
        self.db.commit()
        return proposal

    def vote(self, proposal_id, voter_id):
        self.db.add(Vote(proposal_id=proposal_id, voter_id=voter_id))
        self.db.commit()

    def sent_audit(self, proposal_id, created_at):
        self.db.add(
            AuditLogEntry(
                action="meeting_decision_sent",
                entity_type="proposal",
                entity_id=proposal_id,
                created_at=created_at,
            )
        )
        self.db.commit()


@pytest.fixture()
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with Session() as session:
        yield session


@pytest.fixture()
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient

    from grant_notify.db.session import get_db
    from grant_notify.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
