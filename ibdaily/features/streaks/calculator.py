"""
Deadline-aware streak and calendar computation.

Pure functions over a member's submissions keyed by DayKey. A streak is the
count of consecutive on-time days ending today (if today is already on time)
or yesterday (while today is still open). Gaps and late days end it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from ibdaily.core.clock import cutoff, date_key, last_n_days, on_time, previous_day_key
from ibdaily.core.constants import CALENDAR_DAYS
from ibdaily.models.streak import CalendarDay
from ibdaily.models.submission import Submission


def index_by_day(submissions: Iterable[Submission]) -> Dict[str, Submission]:
    """Map DayKey -> submission. At most one row exists per day."""
    return {submission.date_key: submission for submission in submissions}


def compute_streak(
    submissions_by_day: Mapping[str, Submission],
    now: Optional[datetime] = None,
) -> int:
    if now is None:
        now = datetime.now(timezone.utc)

    today = date_key(now)
    today_submission = submissions_by_day.get(today)

    # Deadline passed with nothing in: broken.
    if today_submission is None and now > cutoff(today):
        return 0

    if today_submission is not None and on_time(today_submission.created_at, today):
        day = today
    else:
        day = previous_day_key(today)

    streak = 0
    while True:
        submission = submissions_by_day.get(day)
        if submission is None or not on_time(submission.created_at, day):
            break
        streak += 1
        day = previous_day_key(day)
    return streak


def classify_day(submission: Optional[Submission], day: str) -> str:
    if submission is None:
        return "missed"
    return "on-time" if on_time(submission.created_at, day) else "late"


def compute_calendar(
    submissions_by_day: Mapping[str, Submission],
    now: Optional[datetime] = None,
    days: int = CALENDAR_DAYS,
) -> List[CalendarDay]:
    """
    History for the last ``days`` DayKeys, oldest first.

    Today shows as missed until something is submitted, even before the deadline.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return [
        CalendarDay(date_key=day, status=classify_day(submissions_by_day.get(day), day))
        for day in last_n_days(days, now)
    ]


def is_better_streak(candidate: int, stored: Optional[int]) -> bool:
    return candidate > (stored or 0)


def is_better_rank(candidate: int, stored: Optional[int]) -> bool:
    """Lower rank is better; any rank beats no rank."""
    return stored is None or candidate < stored
