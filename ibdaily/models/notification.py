from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from ibdaily.core.constants import (
    DEFAULT_LAST_CALL_MINUTES_BEFORE_CUTOFF,
    DEFAULT_REMIND_MINUTES_BEFORE_CUTOFF,
)

ReminderType = Literal["REMIND", "LAST_CALL"]


@dataclass
class NotificationPrefs:
    """Per-user reminder settings. Quiet hours are IST civil hours (0-23)."""

    user_id: str
    is_enabled: bool = True
    remind_minutes_before_cutoff: int = DEFAULT_REMIND_MINUTES_BEFORE_CUTOFF
    last_call_minutes_before_cutoff: int = DEFAULT_LAST_CALL_MINUTES_BEFORE_CUTOFF
    quiet_hours_start: Optional[int] = None
    quiet_hours_end: Optional[int] = None


@dataclass(frozen=True)
class ReminderLogEntry:
    """Idempotency record: its existence means this reminder went out today."""

    user_id: str
    cohort_id: str
    date_key: str
    type: ReminderType


class ReminderWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ReminderType
    is_in_window: bool
    minutes_until_deadline: int
