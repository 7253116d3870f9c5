from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ibdaily.core.errors import ValidationError
from ibdaily.features.store.base import Store
from ibdaily.models.notification import NotificationPrefs

_UNSET = object()


def get_notification_prefs(store: Store, user_id: str) -> NotificationPrefs:
    """Stored prefs, or the defaults when the user never saved any."""
    return store.get_notification_prefs(user_id) or NotificationPrefs(user_id=user_id)


def update_notification_prefs(
    store: Store,
    user_id: str,
    *,
    is_enabled: Optional[bool] = None,
    remind_minutes_before_cutoff: Optional[int] = None,
    last_call_minutes_before_cutoff: Optional[int] = None,
    quiet_hours_start=_UNSET,
    quiet_hours_end=_UNSET,
) -> NotificationPrefs:
    """
    Partial update. Quiet hours may be cleared with None but must end up
    either both set or both empty.
    """
    current = get_notification_prefs(store, user_id)
    changes = {}
    if is_enabled is not None:
        changes["is_enabled"] = is_enabled
    if remind_minutes_before_cutoff is not None:
        changes["remind_minutes_before_cutoff"] = remind_minutes_before_cutoff
    if last_call_minutes_before_cutoff is not None:
        changes["last_call_minutes_before_cutoff"] = last_call_minutes_before_cutoff
    if quiet_hours_start is not _UNSET:
        changes["quiet_hours_start"] = quiet_hours_start
    if quiet_hours_end is not _UNSET:
        changes["quiet_hours_end"] = quiet_hours_end

    updated = replace(current, **changes)

    if (updated.quiet_hours_start is None) != (updated.quiet_hours_end is None):
        raise ValidationError("Both quiet hours start and end must be set, or both must be null")
    for hour in (updated.quiet_hours_start, updated.quiet_hours_end):
        if hour is not None and not 0 <= hour <= 23:
            raise ValidationError("Quiet hours must be between 0 and 23")
    for minutes in (updated.remind_minutes_before_cutoff, updated.last_call_minutes_before_cutoff):
        if minutes <= 0:
            raise ValidationError("Reminder offsets must be positive minutes")

    return store.save_notification_prefs(updated)
