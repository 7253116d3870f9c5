from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CohortStatus = Literal["TRIAL", "ACTIVE", "LOCKED"]
MemberRole = Literal["OWNER", "MEMBER"]


@dataclass
class Cohort:
    """
    Persisted cohort row. ``status``/``activated_at`` are the last written values,
    a cache of what the status engine derives, not the source of truth.
    """

    id: str
    name: str
    join_code: str
    trial_ends_at: datetime
    status: CohortStatus = "TRIAL"
    activated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class CohortMembership:
    user_id: str
    cohort_id: str
    role: MemberRole = "MEMBER"
    joined_at: Optional[datetime] = None
    best_streak: int = 0
    best_rank: Optional[int] = None  # lower is better; None until first ranked


@dataclass(frozen=True)
class RatchetResult:
    """Outcome of a compare-and-set on a best-ever value."""

    updated: bool
    value: Optional[int]


class CohortStatusInfo(BaseModel):
    """Effective cohort status plus the flags the UI needs."""

    model_config = ConfigDict(frozen=True)

    status: CohortStatus
    trial_ends_at: datetime
    activated_at: Optional[datetime] = None
    paid_count: int = Field(ge=0)
    member_count: int = Field(ge=0)
    is_trial_expired: bool
    days_until_trial_end: int = Field(ge=0)
    show_activation_counter: bool
    can_submit: bool
