"""Tests for the weekly reminder, daily sent digest and the outstanding-work loader behind them."""
from conftest import utc

from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.models.notification_event import NotificationEvent
from grant_notify.models.scheduled_audit import DailyDigestAudit, WeeklyReminderAudit
from grant_notify.services.action_emails import queue_vote_required_emails
from grant_notify.services.outstanding import ACTION_MEETING, ACTION_VOTE, load_outstanding_state
from grant_notify.services.scheduled.daily_digest import preview_daily_digest, run_daily_digest
from grant_notify.services.scheduled.local_time import iso_week_key, local_time_snapshot
from grant_notify.services.scheduled.weekly_reminder import is_weekly_reminder_due, run_weekly_reminder

# 2026-02-10 is a Tuesday; New York is UTC-5 in February.
TUESDAY_1030_NY = utc(2026, 2, 10, 15, 30)
TUESDAY_0930_NY = utc(2026, 2, 10, 14, 30)
MONDAY_1100_NY = utc(2026, 2, 9, 16, 0)
DIGEST_NOW = utc(2026, 2, 10, 16, 0)


def _committee(factory):
    factory.user("m1", role="member", full_name="Mia Member")
    factory.user("m2", role="member", full_name="Max Member")
    factory.user("o1", role="oversight", full_name="Olive Oversight")
    factory.user("a1", role="admin", full_name="Ada Admin")


class TestLocalTime:
    def test_iso_week_key(self):
        snapshot = local_time_snapshot(TUESDAY_1030_NY, "America/New_York")
        assert (snapshot.weekday, snapshot.hour) == (1, 10)
        assert iso_week_key(snapshot.day) == "2026-W07"

    def test_iso_week_key_at_year_boundary(self):
        snapshot = local_time_snapshot(utc(2027, 1, 1, 17, 0), "America/New_York")
        assert iso_week_key(snapshot.day) == "2026-W53"

    def test_unknown_zone(self):
        assert local_time_snapshot(TUESDAY_1030_NY, "Mars/Olympus_Mons") is None


class TestWeeklyReminderWindow:
    def test_due_on_tuesday_from_ten(self):
        assert is_weekly_reminder_due(TUESDAY_1030_NY) is True

    def test_not_due_before_ten(self):
        assert is_weekly_reminder_due(TUESDAY_0930_NY) is False

    def test_not_due_on_other_days(self):
        assert is_weekly_reminder_due(MONDAY_1100_NY) is False
        assert is_weekly_reminder_due(utc(2026, 2, 11, 16, 0)) is False

    def test_wrong_time_counts_every_user(self, db_session, factory):
        _committee(factory)

        result = run_weekly_reminder(db_session, now=TUESDAY_0930_NY)

        assert result.skipped_wrong_local_time == 4
        assert result.reminders_queued == 0
        assert db_session.query(NotificationEvent).count() == 0


class TestWeeklyReminder:
    def test_one_reminder_per_user_with_work(self, db_session, factory):
        _committee(factory)
        factory.proposal("p1", "m1")
        factory.vote("p1", "m1")

        result = run_weekly_reminder(db_session, now=TUESDAY_1030_NY)

        assert result.week_key == "2026-W07"
        assert result.evaluated_users == 4
        assert result.due_users == 3
        assert result.reminders_queued == 3
        assert result.skipped_no_actions == 1
        keys = sorted(e.idempotency_key for e in db_session.query(NotificationEvent))
        assert keys == [
            "weekly-action-reminder:m1:2026-W07",
            "weekly-action-reminder:m2:2026-W07",
            "weekly-action-reminder:o1:2026-W07",
        ]
        audited = sorted(r.user_id for r in db_session.query(WeeklyReminderAudit).filter_by(week_key="2026-W07"))
        assert audited == ["m1", "m2", "o1"]

    def test_content_reflects_the_user(self, db_session, factory):
        _committee(factory)
        factory.proposal("p1", "m1", title="Library roof")
        factory.vote("p1", "m1")

        run_weekly_reminder(db_session, now=TUESDAY_1030_NY)

        voter = db_session.query(NotificationEvent).filter_by(idempotency_key="weekly-action-reminder:m2:2026-W07").one()
        assert voter.title == "Tuesday update: 0 pending proposals, 1 action for you"
        assert voter.link_path == "/workspace?proposalId=p1"
        assert voter.payload == {"weekKey": "2026-W07", "reminderTimeZone": "America/New_York"}
        proposer = db_session.query(NotificationEvent).filter_by(idempotency_key="weekly-action-reminder:m1:2026-W07").one()
        assert "Library roof" in proposer.body
        assert "Max Member" in proposer.body

    def test_second_run_same_week_is_deduped(self, db_session, factory):
        _committee(factory)
        factory.proposal("p1", "m1")

        run_weekly_reminder(db_session, now=TUESDAY_1030_NY)
        again = run_weekly_reminder(db_session, now=utc(2026, 2, 10, 20, 0))

        assert again.reminders_queued == 0
        assert again.skipped_already_sent == 3
        assert db_session.query(NotificationEvent).count() == 3

    def test_next_week_sends_again(self, db_session, factory):
        _committee(factory)
        factory.proposal("p1", "m1")

        run_weekly_reminder(db_session, now=TUESDAY_1030_NY)
        result = run_weekly_reminder(db_session, now=utc(2026, 2, 17, 15, 30))

        assert result.week_key == "2026-W08"
        assert result.reminders_queued == 3


class TestOutstandingState:
    def test_discretionary_proposer_never_votes(self, db_session, factory):
        _committee(factory)
        factory.proposal("d1", "m1", proposal_type="discretionary")
        factory.vote("d1", "m1")

        state = load_outstanding_state(db_session)

        assert [a.type for a in state.actions_by_user_id.get("m1", [])] == []
        assert [a.type for a in state.actions_by_user_id["m2"]] == [ACTION_VOTE]
        [update] = state.own_updates_by_user_id["m1"]
        assert update.summary == "Waiting on 2 remaining votes before meeting review."
        assert update.chase_names == ["Max Member", "Olive Oversight"]

    def test_complete_votes_move_to_meeting_review(self, db_session, factory):
        _committee(factory)
        factory.proposal("d1", "m1", proposal_type="discretionary")
        factory.vote("d1", "m2")
        factory.vote("d1", "o1")

        state = load_outstanding_state(db_session)

        assert [a.type for a in state.actions_by_user_id["o1"]] == [ACTION_MEETING]
        assert state.actions_by_user_id["o1"][0].link_path == "/meeting?proposalId=d1"
        [update] = state.own_updates_by_user_id["m1"]
        assert update.chase_names == ["Olive Oversight"]

    def test_approved_goes_to_admins(self, db_session, factory):
        _committee(factory)
        factory.proposal("p9", "m2", status="approved")

        state = load_outstanding_state(db_session)

        [action] = state.actions_by_user_id["a1"]
        assert action.link_path == "/admin?proposalId=p9"
        assert state.own_updates_by_user_id["m2"][0].status_label == "Approved"


class TestActionRequiredEmails:
    def test_one_email_per_recipient_with_address(self, db_session, factory):
        _committee(factory)
        factory.user("x1", role="member", email="")
        factory.proposal("p1", "m1", title="Library roof")

        queued = queue_vote_required_emails(db_session, "p1", "Library roof", "joint", ["m2", "o1", "x1", "ghost"], "m1")

        assert queued == 2
        event = db_session.query(NotificationEvent).filter_by(idempotency_key="action-required:vote:p1:m2").one()
        assert event.title == "Action required: Library roof"
        assert event.payload == {"actionType": ACTION_VOTE, "actionTitle": "Library roof", "targetRole": "member"}
        assert event.entity_id == "p1"

    def test_repeat_call_is_idempotent(self, db_session, factory):
        _committee(factory)
        factory.proposal("p1", "m1")

        queue_vote_required_emails(db_session, "p1", "Proposal p1", "joint", ["m2"])
        assert queue_vote_required_emails(db_session, "p1", "Proposal p1", "joint", ["m2"]) == 0
        assert db_session.query(NotificationEvent).count() == 1


def _digest_fixture(factory):
    _committee(factory)
    factory.proposal("s1", "m1", status="sent", title="Beta shelter", sent_at=utc(2026, 2, 10, 14, 0))
    factory.proposal("s2", "m2", status="sent", title="Alpha clinic", sent_at=utc(2026, 2, 10, 15, 0))
    for pid in ("ap1", "ap2", "ap3"):
        factory.proposal(pid, "m1", status="approved")
    factory.sent_audit("s1", utc(2026, 2, 10, 14, 0))
    factory.sent_audit("s2", utc(2026, 2, 10, 15, 0))


class TestDailyDigest:
    def test_digest_lists_sent_and_outstanding(self, db_session, factory):
        _digest_fixture(factory)

        result = run_daily_digest(db_session, now=DIGEST_NOW)

        assert result.day_key == "2026-02-10"
        assert result.digest_queued == 1
        assert (result.sent_events_found, result.proposals_included, result.outstanding_included) == (2, 2, 3)
        event = db_session.get(NotificationEvent, result.event_id)
        assert event.idempotency_key == "proposal-sent-digest:2026-02-10"
        assert event.payload["sentProposalIds"] == ["s2", "s1"]
        assert event.payload["outstandingProposalIds"] == ["ap1", "ap2", "ap3"]
        assert event.title == "Daily sent digest: 2 proposals marked Sent"
        assert db_session.query(NotificationDelivery).filter_by(event_id=event.id).count() == 4
        assert db_session.query(DailyDigestAudit).filter_by(day_key="2026-02-10").count() == 1

    def test_second_run_same_day_is_duplicate(self, db_session, factory):
        _digest_fixture(factory)

        run_daily_digest(db_session, now=DIGEST_NOW)
        again = run_daily_digest(db_session, now=utc(2026, 2, 10, 22, 0))

        assert again.reason == "duplicate"
        assert again.skipped_already_sent == 1
        assert again.digest_queued == 0
        assert db_session.query(NotificationEvent).count() == 1

    def test_before_window(self, db_session, factory):
        _digest_fixture(factory)

        result = run_daily_digest(db_session, now=TUESDAY_0930_NY)

        assert result.skipped_wrong_local_time == 1
        assert result.due_for_window is False
        assert db_session.query(NotificationEvent).count() == 0

    def test_no_sent_proposals_sends_nothing(self, db_session, factory):
        _committee(factory)

        result = run_daily_digest(db_session, now=DIGEST_NOW)

        assert result.skipped_no_events == 1
        assert db_session.query(DailyDigestAudit).count() == 0

    def test_only_rows_from_the_local_day_count(self, db_session, factory):
        _committee(factory)
        factory.proposal("late", "m1", status="sent", title="Late yesterday")
        factory.proposal("old", "m1", status="sent", title="Two days ago")
        factory.proposal("today", "m1", status="sent", title="Today")
        factory.sent_audit("late", utc(2026, 2, 10, 3, 0))  # 22:00 on Feb 9 in New York
        factory.sent_audit("old", utc(2026, 2, 8, 16, 0))  # outside the lookback
        factory.sent_audit("today", utc(2026, 2, 10, 12, 0))

        result = run_daily_digest(db_session, now=DIGEST_NOW)

        assert result.sent_events_found == 1
        event = db_session.get(NotificationEvent, result.event_id)
        assert event.payload["sentProposalIds"] == ["today"]

    def test_manual_runs_are_repeatable_and_unaudited(self, db_session, factory):
        _digest_fixture(factory)

        first = run_daily_digest(db_session, now=TUESDAY_0930_NY, ignore_time_window=True)
        second = run_daily_digest(db_session, now=TUESDAY_0930_NY, ignore_time_window=True)

        assert first.digest_queued == second.digest_queued == 1
        assert first.event_id != second.event_id
        keys = [e.idempotency_key for e in db_session.query(NotificationEvent)]
        assert all(k.startswith("proposal-sent-digest:2026-02-10:manual:") for k in keys)
        assert db_session.query(DailyDigestAudit).count() == 0

    def test_manual_run_ignores_existing_audit(self, db_session, factory):
        _digest_fixture(factory)
        run_daily_digest(db_session, now=DIGEST_NOW)

        manual = run_daily_digest(db_session, now=DIGEST_NOW, ignore_time_window=True)

        assert manual.digest_queued == 1

    def test_force_send_without_sent_proposals(self, db_session, factory):
        _committee(factory)
        factory.proposal("ap1", "m1", status="approved")

        result = run_daily_digest(db_session, now=DIGEST_NOW, force_send=True)

        assert result.digest_queued == 1
        assert (result.proposals_included, result.outstanding_included) == (0, 1)
        event = db_session.get(NotificationEvent, result.event_id)
        assert "No proposals were marked Sent today." in event.body


class TestDigestPreview:
    def test_preview_writes_nothing(self, db_session, factory):
        _digest_fixture(factory)

        preview = preview_daily_digest(db_session, now=DIGEST_NOW)

        assert preview["day_key"] == "2026-02-10"
        assert preview["due_for_window"] is True
        assert preview["already_sent"] is False
        assert [p["title"] for p in preview["sent"]] == ["Alpha clinic", "Beta shelter"]
        assert preview["sent"][0]["sent_on"] == "2026-02-10"
        assert len(preview["outstanding"]) == 3
        assert preview["recipient_count"] == 4
        assert db_session.query(NotificationEvent).count() == 0
