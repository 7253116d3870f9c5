from datetime import datetime

from ibdaily.core.clock import add_days
from ibdaily.features.streaks.calculator import (
    compute_calendar,
    compute_streak,
    index_by_day,
    is_better_rank,
    is_better_streak,
)
from ibdaily.models.submission import Submission

D = "2024-03-15"


def _at(day: str, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime.fromisoformat(f"{day}T{hour:02d}:{minute:02d}:{second:02d}+05:30")


def _sub(day: str, hour: int = 20, minute: int = 0, second: int = 0) -> Submission:
    return Submission(user_id="u1", cohort_id="c1", date_key=day, created_at=_at(day, hour, minute, second))


def _days(*offsets):
    return [add_days(D, o) for o in offsets]


def test_four_on_time_days_make_a_streak_of_four():
    subs = index_by_day(_sub(day) for day in _days(-3, -2, -1, 0))
    assert compute_streak(subs, _at(D, 22)) == 4


def test_late_day_ends_the_streak():
    subs = {day: _sub(day) for day in _days(-3, -2, 0)}
    subs[add_days(D, -1)] = _sub(add_days(D, -1), 21, 30)
    # today counts, yesterday was late, scanning stops there
    assert compute_streak(subs, _at(D, 22)) == 1


def test_submission_exactly_at_deadline_counts():
    subs = index_by_day([_sub(D, 21, 0, 0)])
    assert compute_streak(subs, _at(D, 21, 30)) == 1


def test_submission_one_second_late_does_not():
    subs = index_by_day([_sub(D, 21, 0, 1)])
    assert compute_streak(subs, _at(D, 21, 30)) == 0


def test_open_day_does_not_penalize():
    subs = index_by_day(_sub(day) for day in _days(-2, -1))
    assert compute_streak(subs, _at(D, 18)) == 2


def test_deadline_passed_with_nothing_today_breaks_streak():
    subs = index_by_day(_sub(day) for day in _days(-3, -2, -1))
    assert compute_streak(subs, _at(D, 21, 0, 1)) == 0


def test_late_today_still_counts_prior_days():
    subs = index_by_day(_sub(day) for day in _days(-2, -1))
    subs[D] = _sub(D, 21, 45)
    assert compute_streak(subs, _at(D, 22)) == 2


def test_gap_ends_streak():
    subs = index_by_day(_sub(day) for day in _days(-4, -3, -2))
    assert compute_streak(subs, _at(D, 18)) == 0


def test_no_submissions():
    assert compute_streak({}, _at(D, 10)) == 0


def test_calendar_covers_thirty_days_oldest_first():
    subs = {add_days(D, -2): _sub(add_days(D, -2)), add_days(D, -1): _sub(add_days(D, -1), 23)}
    calendar = compute_calendar(subs, _at(D, 12))

    assert len(calendar) == 30
    assert calendar[0].date_key == add_days(D, -29)
    assert calendar[-1].date_key == D
    assert [c.status for c in calendar[-3:]] == ["on-time", "late", "missed"]


def test_calendar_length_override():
    assert len(compute_calendar({}, _at(D, 12), days=7)) == 7


def test_ratchet_predicates():
    assert is_better_streak(3, None)
    assert is_better_streak(3, 2)
    assert not is_better_streak(3, 3)
    assert is_better_rank(4, None)
    assert is_better_rank(1, 2)
    assert not is_better_rank(2, 2)
    assert not is_better_rank(3, 2)
