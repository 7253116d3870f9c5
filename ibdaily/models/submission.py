from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

QualityStatus = Literal["GOOD", "LOW_EFFORT"]


@dataclass(frozen=True)
class Submission:
    """
    One learning log per (user, cohort, day). A resubmission replaces the row,
    including ``created_at``, which can change its on-time classification.
    """

    user_id: str
    cohort_id: str
    date_key: str
    created_at: datetime
    bullets: Tuple[str, ...] = ()
    quality_status: QualityStatus = "GOOD"
    quality_reasons: Tuple[str, ...] = field(default_factory=tuple)
    subject: Optional[str] = None
    subject_id: Optional[str] = None


class QualityCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: QualityStatus
    reasons: List[str] = Field(default_factory=list)
    validation_errors: List[str] = Field(default_factory=list)

    @property
    def is_blocked(self) -> bool:
        return bool(self.validation_errors)


class SubmissionResult(BaseModel):
    """Response for a stored submission."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    cohort_id: str
    date_key: str
    created_at: datetime
    bullets: List[str]
    subject: Optional[str] = None
    subject_id: Optional[str] = None
    quality_status: QualityStatus
    quality_reasons: List[str] = Field(default_factory=list)
    on_time: bool
