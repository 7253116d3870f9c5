"""
Reminder window decisions, evaluated once per (user, cohort, day) per sweep.

The scheduler never schedules itself; an external trigger calls it every few
minutes. Each decision is pure. Idempotency comes from the reminder log,
which the caller consults (``already_sent``) and claims before delivery.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Collection, Optional

from ibdaily.core.clock import local_hour, minutes_until_deadline
from ibdaily.core.constants import AT_RISK_MINUTES, REMINDER_TOLERANCE_MINUTES
from ibdaily.models.notification import NotificationPrefs, ReminderType, ReminderWindow


def is_in_quiet_hours(
    quiet_start: Optional[int],
    quiet_end: Optional[int],
    now: Optional[datetime] = None,
) -> bool:
    """``[start, end)`` in IST hours; wraps past midnight when start > end."""
    if quiet_start is None or quiet_end is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc)

    hour = local_hour(now)
    if quiet_start > quiet_end:
        return hour >= quiet_start or hour < quiet_end
    return quiet_start <= hour < quiet_end


def _within(minutes_left: int, target: int, tolerance: int) -> bool:
    return target - tolerance <= minutes_left <= target + tolerance


def check_reminder_window(
    *,
    remind_minutes: int,
    last_call_minutes: int,
    now: Optional[datetime] = None,
    tolerance: int = REMINDER_TOLERANCE_MINUTES,
) -> Optional[ReminderWindow]:
    """Which window is open right now, if any. LAST_CALL wins an overlap."""
    if now is None:
        now = datetime.now(timezone.utc)

    minutes_left = minutes_until_deadline(now)
    if minutes_left <= 0:
        return None

    if _within(minutes_left, last_call_minutes, tolerance):
        return ReminderWindow(type="LAST_CALL", is_in_window=True, minutes_until_deadline=minutes_left)
    if _within(minutes_left, remind_minutes, tolerance):
        return ReminderWindow(type="REMIND", is_in_window=True, minutes_until_deadline=minutes_left)
    return None


def should_send_reminder(
    *,
    has_submitted_today: bool,
    prefs: NotificationPrefs,
    already_sent: Collection[ReminderType] = (),
    now: Optional[datetime] = None,
) -> Optional[ReminderType]:
    """
    Reminder type to send now, or None.

    Checks run in priority order: submitted today, disabled, quiet hours,
    deadline passed / no open window, already sent.
    """
    if has_submitted_today:
        return None
    if not prefs.is_enabled:
        return None
    if now is None:
        now = datetime.now(timezone.utc)
    if is_in_quiet_hours(prefs.quiet_hours_start, prefs.quiet_hours_end, now):
        return None

    window = check_reminder_window(
        remind_minutes=prefs.remind_minutes_before_cutoff,
        last_call_minutes=prefs.last_call_minutes_before_cutoff,
        now=now,
    )
    if window is None:
        return None
    if window.type in already_sent:
        return None
    return window.type


def is_at_risk(
    has_submitted_today: bool,
    now: Optional[datetime] = None,
    *,
    at_risk_minutes: int = AT_RISK_MINUTES,
) -> bool:
    """Nothing submitted yet and the deadline is less than an hour away."""
    if has_submitted_today:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    minutes_left = minutes_until_deadline(now)
    return 0 < minutes_left <= at_risk_minutes
