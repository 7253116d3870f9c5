from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ibdaily.api.deps import resolve_now
from ibdaily.features.submissions.service import SubmissionService

router = APIRouter()


class SubmitRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    cohort_id: str = Field(..., min_length=1)
    bullets: List[str]
    subject_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


@router.get("/v1/submissions/today")
def get_today_submission(
    user_id: str = Query(..., min_length=1),
    cohort_id: str = Query(..., min_length=1),
    now: datetime = Depends(resolve_now),
):
    return SubmissionService().today(user_id=user_id, cohort_id=cohort_id, now=now)


@router.post("/v1/submissions")
def submit(body: SubmitRequest, now: datetime = Depends(resolve_now)):
    """Create or replace today's submission."""
    result = SubmissionService().submit(
        user_id=body.user_id,
        cohort_id=body.cohort_id,
        bullets=body.bullets,
        subject_id=body.subject_id,
        now=now,
    )
    return {"submission": result}
