from datetime import datetime, timedelta, timezone

import pytest

from ibdaily.features.cohorts.status import (
    compute_cohort_status,
    compute_trial_end_date,
    format_days_remaining,
    get_activation_counter_text,
    is_subscription_active,
    status_write_back,
)
from ibdaily.models.user import Subscription

NOW = datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)


def _status(**overrides):
    params = dict(
        current_status="TRIAL",
        trial_ends_at=NOW + timedelta(days=5),
        activated_at=None,
        paid_count=0,
        member_count=8,
        now=NOW,
    )
    params.update(overrides)
    return compute_cohort_status(**params)


@pytest.mark.parametrize("current", ["TRIAL", "LOCKED"])
@pytest.mark.parametrize("trial_offset_days", [5, -3])
def test_six_paid_members_activate(current, trial_offset_days):
    info = _status(
        current_status=current,
        trial_ends_at=NOW + timedelta(days=trial_offset_days),
        paid_count=6,
    )
    assert info.status == "ACTIVE"
    assert info.activated_at == NOW
    assert info.can_submit


def test_activation_is_permanent():
    activated = NOW - timedelta(days=20)
    info = _status(
        current_status="ACTIVE",
        trial_ends_at=NOW - timedelta(days=10),
        activated_at=activated,
        paid_count=1,
    )
    assert info.status == "ACTIVE"
    assert info.activated_at == activated


def test_activated_at_alone_keeps_cohort_active():
    info = _status(current_status="TRIAL", activated_at=NOW - timedelta(days=1), paid_count=0)
    assert info.status == "ACTIVE"


def test_expired_trial_without_enough_paid_locks():
    info = _status(trial_ends_at=NOW - timedelta(seconds=1), paid_count=5)
    assert info.status == "LOCKED"
    assert info.is_trial_expired
    assert info.can_submit is False
    assert info.days_until_trial_end == 0


def test_trial_days_remaining_rounds_up():
    assert _status(trial_ends_at=NOW + timedelta(days=2, hours=1)).days_until_trial_end == 3
    assert _status(trial_ends_at=NOW + timedelta(days=1)).days_until_trial_end == 1
    info = _status(trial_ends_at=NOW)
    assert info.status == "TRIAL"
    assert info.days_until_trial_end == 0


def test_activation_counter_visibility():
    assert _status(paid_count=3).show_activation_counter is False
    assert _status(paid_count=4).show_activation_counter is True


@pytest.mark.parametrize("paid,expected", [(0, None), (3, None), (4, "Activation: 4/6"), (5, "Activation: 5/6"), (6, "Activation: 6/6")])
def test_activation_counter_text(paid, expected):
    assert get_activation_counter_text(paid) == expected


def test_write_back_stamps_activation_once():
    info = _status(paid_count=6)
    assert status_write_back(current_status="TRIAL", activated_at=None, info=info, now=NOW) == {
        "status": "ACTIVE",
        "activated_at": NOW,
    }


def test_write_back_skips_unchanged_status():
    info = _status(paid_count=1)
    assert status_write_back(current_status="TRIAL", activated_at=None, info=info, now=NOW) is None


def test_write_back_lock_has_no_activation():
    info = _status(trial_ends_at=NOW - timedelta(days=1))
    assert status_write_back(current_status="TRIAL", activated_at=None, info=info, now=NOW) == {"status": "LOCKED"}


def test_subscription_paid_only_when_active_and_unexpired():
    future = NOW + timedelta(days=3)
    past = NOW - timedelta(seconds=1)
    assert is_subscription_active(Subscription("u1", "active", future), NOW)
    assert not is_subscription_active(Subscription("u1", "active", past), NOW)
    assert not is_subscription_active(Subscription("u1", "canceled", future), NOW)
    assert not is_subscription_active(None, NOW)


def test_trial_end_date_is_fourteen_days_out():
    assert compute_trial_end_date(NOW) == NOW + timedelta(days=14)


def test_format_days_remaining():
    assert format_days_remaining(0) == "Trial ends today"
    assert format_days_remaining(1) == "1 day left in trial"
    assert format_days_remaining(9) == "9 days left in trial"
