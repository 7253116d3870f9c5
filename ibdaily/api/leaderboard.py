from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from ibdaily.api.deps import resolve_now
from ibdaily.features.leaderboard.service import LeaderboardService

router = APIRouter()


@router.get("/v1/leaderboard")
def get_leaderboard(
    cohort_id: str = Query(..., min_length=1),
    user_id: str = Query(..., min_length=1),
    now: datetime = Depends(resolve_now),
):
    return LeaderboardService().leaderboard(cohort_id=cohort_id, now=now, viewer_id=user_id)
