from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MemberHealthStatus = Literal["active", "at_risk", "inactive"]


class DailyStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_key: str
    total_members: int = Field(ge=0)
    submitted_count: int = Field(ge=0)
    missed_count: int = Field(ge=0)
    submission_rate: int = Field(ge=0, le=100, description="Percent, rounded")


class MemberHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: Optional[str] = None
    current_streak: int = Field(ge=0)
    submissions_last_7_days: int = Field(ge=0)
    submissions_last_30_days: int = Field(ge=0)
    last_submission_date: Optional[str] = None
    status: MemberHealthStatus


class RetentionMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    d1: int = 0
    d3: int = 0
    d7: int = 0


class CohortHealth(BaseModel):
    """Owner-facing engagement snapshot for a cohort."""

    model_config = ConfigDict(frozen=True)

    cohort_id: str
    cohort_name: Optional[str] = None
    total_members: int
    active_members: int
    at_risk_members: int
    inactive_members: int
    today_submission_rate: int
    weekly_average_rate: int
    daily_stats: List[DailyStats]
    member_health: List[MemberHealth]
    retention: RetentionMetrics
    computed_at: datetime
