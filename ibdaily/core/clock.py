"""
Civil-time helpers for the daily deadline.

All day boundaries are computed in India Standard Time (UTC+05:30, no DST).
Every function takes an explicit instant; only ``utc_now()`` reads the system
clock and it should be called at the outermost boundary (API route, worker).
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from ibdaily.core.constants import DEADLINE_HOUR

IST = timezone(timedelta(hours=5, minutes=30), "IST")

_DAY_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DayKeyError(ValueError):
    """Raised for a malformed DayKey. Always a programming error."""


def utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def _aware(instant: datetime) -> datetime:
    # Naive instants are treated as UTC, never as host-local time.
    return instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)


def to_local(instant: datetime) -> datetime:
    return _aware(instant).astimezone(IST)


def parse_day_key(day_key: str) -> date:
    """Parse a ``YYYY-MM-DD`` key, failing loudly on anything else."""
    if not isinstance(day_key, str) or not _DAY_KEY_RE.match(day_key):
        raise DayKeyError(f"Malformed day key: {day_key!r}")
    try:
        return date.fromisoformat(day_key)
    except ValueError as exc:
        raise DayKeyError(f"Malformed day key: {day_key!r}") from exc


def date_key(instant: datetime) -> str:
    """Civil day (IST) of an instant as ``YYYY-MM-DD``."""
    return to_local(instant).date().isoformat()


def cutoff(day_key: str, *, deadline_hour: int = DEADLINE_HOUR) -> datetime:
    """Deadline instant (UTC) for a civil day: ``deadline_hour``:00 IST."""
    day = parse_day_key(day_key)
    local = datetime.combine(day, time(hour=deadline_hour), tzinfo=IST)
    return local.astimezone(timezone.utc)


def on_time(created_at: datetime, day_key: str, *, deadline_hour: int = DEADLINE_HOUR) -> bool:
    """Inclusive: a submission landing exactly on the deadline is on time."""
    return _aware(created_at) <= cutoff(day_key, deadline_hour=deadline_hour)


def add_days(day_key: str, days: int) -> str:
    return (parse_day_key(day_key) + timedelta(days=days)).isoformat()


def previous_day_key(day_key: str) -> str:
    return add_days(day_key, -1)


def yesterday_key(now: datetime) -> str:
    return previous_day_key(date_key(now))


def last_n_days(n: int, now: datetime) -> List[str]:
    """The ``n`` most recent civil days ending at ``now``'s day, oldest first."""
    if n <= 0:
        return []
    today = to_local(now).date()
    return [(today - timedelta(days=offset)).isoformat() for offset in range(n - 1, -1, -1)]


def _civil_date(value) -> date:
    if isinstance(value, datetime):
        return to_local(value).date()
    if isinstance(value, date):
        return value
    return parse_day_key(value)


def week_start(value) -> str:
    """Monday of the week containing ``value`` (instant, date or DayKey).

    Sunday maps back to the previous Monday.
    """
    day = _civil_date(value)
    return (day - timedelta(days=day.weekday())).isoformat()


def week_end(value) -> str:
    """Sunday closing the week that ``week_start`` opens."""
    return add_days(week_start(value), 6)


def local_hour(now: datetime) -> int:
    return to_local(now).hour


def minutes_until_deadline(now: datetime, *, deadline_hour: int = DEADLINE_HOUR) -> int:
    """Whole minutes (floored) until today's deadline; negative once it has passed."""
    remaining = cutoff(date_key(now), deadline_hour=deadline_hour) - _aware(now)
    return int(remaining // timedelta(minutes=1))


def time_until_deadline(now: datetime, *, deadline_hour: int = DEADLINE_HOUR) -> timedelta:
    remaining = cutoff(date_key(now), deadline_hour=deadline_hour) - _aware(now)
    return max(timedelta(0), remaining)


def is_deadline_passed(now: datetime, *, deadline_hour: int = DEADLINE_HOUR) -> bool:
    return time_until_deadline(now, deadline_hour=deadline_hour) == timedelta(0)


def format_time_remaining(remaining: Optional[timedelta]) -> str:
    """Render a duration as ``HH:MM:SS`` (``00:00:00`` when nothing is left)."""
    if remaining is None or remaining <= timedelta(0):
        return "00:00:00"
    total_seconds = int(remaining.total_seconds())
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
