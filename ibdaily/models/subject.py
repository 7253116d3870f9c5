from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

SubjectLevel = Literal["SL", "HL"]
LevelScope = Literal["BOTH", "SL_ONLY", "HL_ONLY"]


@dataclass(frozen=True)
class Subject:
    """IB Diploma subject in the catalogue. ``id`` is stable across reseeds."""

    id: str
    subject_code: str
    transcript_name: str
    full_name: str
    group_name: str
    group_number: int
    sl_available: bool = True
    hl_available: bool = True
    has_units: bool = False


@dataclass(frozen=True)
class Unit:
    id: str
    subject_id: str
    name: str
    order_index: int
    level_scope: LevelScope = "BOTH"


@dataclass(frozen=True)
class UserSubject:
    user_id: str
    subject_id: str
    level: SubjectLevel
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class WeeklyUnitSelection:
    """The unit a student focuses on for one subject during one Monday-keyed week."""

    user_id: str
    subject_id: str
    unit_id: str
    week_start_date_key: str
    created_at: Optional[datetime] = None


class SubjectSelection(BaseModel):
    subject_id: str = Field(..., min_length=1)
    level: str = Field(..., min_length=1)


class SuggestedUnit(BaseModel):
    """Last week's pick offered again when nothing is chosen yet this week."""

    subject_id: str
    subject_name: str
    unit_id: str
    unit_name: str
    from_last_week: bool = True

