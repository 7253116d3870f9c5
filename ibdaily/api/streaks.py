from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from ibdaily.api.deps import resolve_now
from ibdaily.features.streaks.service import StreakService

router = APIRouter()


@router.get("/v1/streaks/current")
def get_current_streak(
    user_id: str = Query(..., min_length=1),
    cohort_id: str = Query(..., min_length=1),
    now: datetime = Depends(resolve_now),
):
    """Current streak, 30-day calendar and best-ever stats for a member."""
    return StreakService().summary(user_id=user_id, cohort_id=cohort_id, now=now)
