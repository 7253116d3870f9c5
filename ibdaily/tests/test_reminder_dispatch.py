from unittest.mock import MagicMock

import pytest

from ibdaily.features.cohorts.service import CohortService
from ibdaily.features.reminders.dispatcher import run_reminder_sweep
from ibdaily.features.reminders.email import EmailDeliveryError
from ibdaily.models.notification import NotificationPrefs, ReminderLogEntry
from ibdaily.models.submission import Submission
from ibdaily.models.user import User

D = "2024-03-15"


def _sender(configured=True):
    sender = MagicMock()
    sender.is_configured = configured
    sender.provider = "mock"
    return sender


@pytest.fixture
def cohort(store, ist):
    service = CohortService(store)
    cohort = service.create_cohort(owner_id="owner", name="Bio HL", now=ist("2024-03-10", 9))
    for user_id in ("u1", "u2"):
        service.join_cohort(user_id=user_id, join_code=cohort.join_code, now=ist("2024-03-10", 10))
    store.save_user(User(id="owner", email="owner@example.com", name="Owner"))
    store.save_user(User(id="u1", email="u1@example.com", name="Asha"))
    store.save_user(User(id="u2", email="", name="No Email"))
    return cohort


def test_sends_remind_to_members_who_have_not_submitted(store, cohort, ist):
    store.upsert_submission(Submission("owner", cohort.id, D, ist(D, 9), bullets=("x" * 25, "y" * 25)))
    sender = _sender()

    summary = run_reminder_sweep(store, sender, ist(D, 19, 30))

    assert summary["date_key"] == D
    assert summary["minutes_until_deadline"] == 90
    assert summary["candidates"] == 1
    assert summary["sent"] == 1
    assert summary["results"] == [{"user_id": "u1", "cohort_id": cohort.id, "type": "REMIND", "success": True}]

    sender.send.assert_called_once()
    kwargs = sender.send.call_args.kwargs
    assert kwargs["to"] == "u1@example.com"
    assert kwargs["content"].subject == "Reminder: 90 minutes until deadline - IBDaily"
    assert store.list_reminder_logs(D) == [ReminderLogEntry("u1", cohort.id, D, "REMIND")]


def test_second_sweep_in_same_window_sends_nothing(store, cohort, ist):
    sender = _sender()
    first = run_reminder_sweep(store, sender, ist(D, 19, 30))
    second = run_reminder_sweep(store, sender, ist(D, 19, 33))

    assert first["sent"] == 2
    assert second["sent"] == 0
    assert sender.send.call_count == 2


def test_last_call_follows_remind(store, cohort, ist):
    sender = _sender()
    run_reminder_sweep(store, sender, ist(D, 19, 30))
    summary = run_reminder_sweep(store, sender, ist(D, 20, 45))
    assert {r["type"] for r in summary["results"]} == {"LAST_CALL"}
    assert summary["sent"] == 2


def test_failed_delivery_releases_claim(store, cohort, ist):
    failing = _sender()
    failing.send.side_effect = EmailDeliveryError("boom")

    summary = run_reminder_sweep(store, failing, ist(D, 19, 30))
    assert summary["sent"] == 0
    assert all(r["success"] is False for r in summary["results"])
    assert store.list_reminder_logs(D) == []

    retry = run_reminder_sweep(store, _sender(), ist(D, 19, 32))
    assert retry["sent"] == 2


def test_claim_held_elsewhere_is_respected(store, cohort, ist):
    store.try_claim_reminder(ReminderLogEntry("u1", cohort.id, D, "REMIND"))
    sender = _sender()
    summary = run_reminder_sweep(store, sender, ist(D, 19, 30))
    assert [r["user_id"] for r in summary["results"]] == ["owner"]


def test_prefs_are_honored(store, cohort, ist):
    store.save_notification_prefs(NotificationPrefs(user_id="u1", is_enabled=False))
    store.save_notification_prefs(NotificationPrefs(user_id="owner", quiet_hours_start=19, quiet_hours_end=21))
    summary = run_reminder_sweep(store, _sender(), ist(D, 19, 30))
    assert summary["candidates"] == 2
    assert summary["sent"] == 0


def test_locked_cohorts_are_skipped(store, cohort, ist):
    store.update_cohort_status(cohort.id, status="LOCKED")
    summary = run_reminder_sweep(store, _sender(), ist(D, 19, 30))
    assert summary["candidates"] == 0


def test_unconfigured_email_skips_sweep(store, cohort, ist):
    sender = _sender(configured=False)
    summary = run_reminder_sweep(store, sender, ist(D, 19, 30))
    assert summary["message"] == "Email not configured, skipping reminders"
    sender.send.assert_not_called()


def test_past_deadline_skips_sweep(store, cohort, ist):
    sender = _sender()
    summary = run_reminder_sweep(store, sender, ist(D, 21, 30))
    assert summary["message"] == "Past deadline, no reminders needed"
    sender.send.assert_not_called()
