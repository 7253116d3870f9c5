from datetime import datetime

import pytest

from ibdaily.core.clock import add_days
from ibdaily.features.leaderboard.ranker import calculate_tier, rank_members
from ibdaily.models.submission import Submission

D = "2024-03-15"
NOW = datetime.fromisoformat(f"{D}T22:00:00+05:30")


def _sub(user_id, offset, hour=8, minute=0, quality="GOOD"):
    day = add_days(D, offset)
    return Submission(
        user_id=user_id,
        cohort_id="c1",
        date_key=day,
        created_at=datetime.fromisoformat(f"{day}T{hour:02d}:{minute:02d}:00+05:30"),
        quality_status=quality,
    )


def _history(user_id, latest_hour):
    # streak 3 (D-2..D) plus two older on-time days after a gap: 5 on-time total
    subs = [_sub(user_id, o) for o in (-6, -5, -2, -1)]
    subs.append(_sub(user_id, 0, hour=latest_hour))
    return subs


def test_earlier_latest_submission_wins_tie():
    entries = rank_members(["late", "early"], _history("late", 10) + _history("early", 9), NOW)

    assert [e.user_id for e in entries] == ["early", "late"]
    for entry in entries:
        assert entry.current_streak == 3
        assert entry.on_time_count_30_days == 5
    assert [e.rank for e in entries] == [1, 2]


def test_streak_beats_on_time_count():
    subs = [_sub("a", o) for o in (-10, -9, -8, -7, 0)] + [_sub("b", o) for o in (-1, 0)]
    entries = rank_members(["a", "b"], subs, NOW)
    assert [e.user_id for e in entries] == ["b", "a"]


def test_members_without_submissions_rank_last():
    entries = rank_members(["ghost", "a"], [_sub("a", -20)], NOW)
    assert [e.user_id for e in entries] == ["a", "ghost"]
    assert entries[1].latest_submission_time is None
    assert entries[1].current_streak == 0


def test_user_id_breaks_exact_ties():
    subs = [_sub("b", 0), _sub("a", 0)]
    entries = rank_members(["b", "a"], subs, NOW)
    assert [e.user_id for e in entries] == ["a", "b"]


def test_low_effort_and_late_days_do_not_count_as_on_time():
    subs = [_sub("a", -3, quality="LOW_EFFORT"), _sub("a", -2, hour=22), _sub("a", -1)]
    entry = rank_members(["a"], subs, NOW)[0]
    assert entry.on_time_count_30_days == 1


def test_submissions_outside_window_are_ignored():
    entry = rank_members(["a"], [_sub("a", -30), _sub("a", -29)], NOW)[0]
    assert entry.on_time_count_30_days == 1


def test_duplicate_member_ids_rank_once():
    entries = rank_members(["a", "a", "b"], [], NOW)
    assert [e.user_id for e in entries] == ["a", "b"]


def test_ranking_is_deterministic():
    subs = _history("x", 9) + _history("y", 9) + [_sub("z", 0)]
    first = rank_members(["z", "y", "x"], subs, NOW)
    second = rank_members(["x", "z", "y"], list(reversed(subs)), NOW)
    assert first == second


@pytest.mark.parametrize(
    "rank,total,tier",
    [
        (1, 5, "TOP"),
        (2, 5, "MIDDLE"),
        (4, 5, "MIDDLE"),
        (5, 5, "CATCHING_UP"),
        (2, 2, "TOP"),
        (1, 1, "TOP"),
        (2, 10, "TOP"),
        (3, 10, "MIDDLE"),
        (9, 10, "CATCHING_UP"),
    ],
)
def test_tiers(rank, total, tier):
    assert calculate_tier(rank, total) == tier


def test_display_names_are_attached():
    entries = rank_members(["a"], [], NOW, display_names={"a": "Asha"})
    assert entries[0].display_name == "Asha"
