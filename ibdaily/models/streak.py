from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CalendarStatus = Literal["on-time", "late", "missed"]


class CalendarDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_key: str
    status: CalendarStatus


class StreakSummary(BaseModel):
    """Streak, history calendar and best-ever stats for one member."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    cohort_id: str
    streak: int = Field(ge=0)
    calendar: List[CalendarDay]
    best_streak: int = Field(ge=0)
    best_rank: Optional[int] = None
    at_risk: bool = False
    minutes_until_deadline: int
    computed_at: datetime
