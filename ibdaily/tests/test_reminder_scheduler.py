import pytest

from ibdaily.features.reminders.scheduler import (
    check_reminder_window,
    is_at_risk,
    is_in_quiet_hours,
    should_send_reminder,
)
from ibdaily.models.notification import NotificationPrefs

D = "2024-03-15"


@pytest.mark.parametrize("hour,expected", [(23, True), (3, True), (22, True), (7, False), (12, False)])
def test_overnight_quiet_hours(ist, hour, expected):
    assert is_in_quiet_hours(22, 7, ist(D, hour)) is expected


def test_same_day_quiet_hours(ist):
    assert is_in_quiet_hours(9, 17, ist(D, 9))
    assert not is_in_quiet_hours(9, 17, ist(D, 17))


def test_no_quiet_hours_configured(ist):
    assert not is_in_quiet_hours(None, None, ist(D, 3))
    assert not is_in_quiet_hours(22, None, ist(D, 23))


def test_remind_window(ist):
    window = check_reminder_window(remind_minutes=90, last_call_minutes=15, now=ist(D, 19, 30))
    assert window.type == "REMIND"
    assert window.minutes_until_deadline == 90


def test_tolerance_band(ist):
    assert check_reminder_window(remind_minutes=90, last_call_minutes=15, now=ist(D, 19, 25)).type == "REMIND"
    assert check_reminder_window(remind_minutes=90, last_call_minutes=15, now=ist(D, 19, 24)) is None


def test_last_call_window(ist):
    window = check_reminder_window(remind_minutes=90, last_call_minutes=15, now=ist(D, 20, 45))
    assert window.type == "LAST_CALL"


def test_last_call_wins_overlap(ist):
    window = check_reminder_window(remind_minutes=20, last_call_minutes=15, now=ist(D, 20, 42))
    assert window.type == "LAST_CALL"


def test_no_window_after_deadline(ist):
    assert check_reminder_window(remind_minutes=90, last_call_minutes=1, now=ist(D, 21, 0, 30)) is None


def test_outside_any_window(ist):
    assert check_reminder_window(remind_minutes=90, last_call_minutes=15, now=ist(D, 19, 0)) is None


def test_submitted_today_short_circuits_everything(ist):
    prefs = NotificationPrefs(user_id="u1")
    assert should_send_reminder(has_submitted_today=True, prefs=prefs, now=ist(D, 20, 45)) is None
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, now=ist(D, 20, 45)) == "LAST_CALL"


def test_disabled_prefs(ist):
    prefs = NotificationPrefs(user_id="u1", is_enabled=False)
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, now=ist(D, 19, 30)) is None


def test_quiet_hours_suppress(ist):
    prefs = NotificationPrefs(user_id="u1", quiet_hours_start=19, quiet_hours_end=22)
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, now=ist(D, 19, 30)) is None


def test_already_sent_is_idempotent(ist):
    prefs = NotificationPrefs(user_id="u1")
    now = ist(D, 19, 30)
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, already_sent={"REMIND"}, now=now) is None
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, already_sent={"LAST_CALL"}, now=now) == "REMIND"


def test_custom_offsets(ist):
    prefs = NotificationPrefs(user_id="u1", remind_minutes_before_cutoff=180, last_call_minutes_before_cutoff=30)
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, now=ist(D, 18, 0)) == "REMIND"
    assert should_send_reminder(has_submitted_today=False, prefs=prefs, now=ist(D, 20, 30)) == "LAST_CALL"


def test_at_risk(ist):
    assert is_at_risk(False, ist(D, 20, 30))
    assert is_at_risk(False, ist(D, 20, 0))
    assert not is_at_risk(False, ist(D, 19, 0))
    assert not is_at_risk(True, ist(D, 20, 30))
    assert not is_at_risk(False, ist(D, 21, 30))
