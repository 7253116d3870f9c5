from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LeaderboardTier = Literal["TOP", "MIDDLE", "CATCHING_UP"]


class LeaderboardEntry(BaseModel):
    """Single ranked member."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    rank: int = Field(ge=1, description="1-based, no gaps")
    tier: LeaderboardTier
    current_streak: int = Field(ge=0)
    on_time_count_30_days: int = Field(ge=0, description="On-time GOOD submissions in window")
    latest_submission_time: Optional[datetime] = None
    display_name: Optional[str] = None


class LeaderboardResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    cohort_id: str
    entries: List[LeaderboardEntry]
    computed_at: datetime
