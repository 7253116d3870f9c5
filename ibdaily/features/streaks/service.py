from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ibdaily.core.clock import date_key, minutes_until_deadline
from ibdaily.core.errors import NotMemberError
from ibdaily.features.reminders.scheduler import is_at_risk
from ibdaily.features.store.base import Store
from ibdaily.features.store.memory import get_store
from ibdaily.features.streaks.calculator import compute_calendar, compute_streak, index_by_day
from ibdaily.models.cohort import RatchetResult
from ibdaily.models.streak import StreakSummary

logger = logging.getLogger("ibdaily.streaks")


def update_best_streak(store: Store, user_id: str, cohort_id: str, streak: int) -> RatchetResult:
    """Raise the stored best streak iff ``streak`` is strictly higher."""
    result = store.raise_best_streak(user_id, cohort_id, streak)
    if result.updated:
        logger.info("streak.best_updated", extra={"user_id": user_id, "cohort_id": cohort_id, "best_streak": streak})
    return result


def update_best_rank(store: Store, user_id: str, cohort_id: str, rank: int) -> RatchetResult:
    """Lower the stored best rank iff ``rank`` is strictly better (smaller)."""
    result = store.lower_best_rank(user_id, cohort_id, rank)
    if result.updated:
        logger.info("leaderboard.best_rank_updated", extra={"user_id": user_id, "cohort_id": cohort_id, "best_rank": rank})
    return result


def get_best_stats(store: Store, user_id: str, cohort_id: str) -> dict:
    membership = store.get_membership(user_id, cohort_id)
    if membership is None:
        return {"best_streak": 0, "best_rank": None}
    return {"best_streak": membership.best_streak or 0, "best_rank": membership.best_rank}


class StreakService:
    """Live streak view for one member, ratcheting the stored best along the way."""

    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()

    def summary(self, *, user_id: str, cohort_id: str, now: Optional[datetime] = None) -> StreakSummary:
        if now is None:
            now = datetime.now(timezone.utc)
        if self.store.get_membership(user_id, cohort_id) is None:
            raise NotMemberError()

        by_day = index_by_day(self.store.list_submissions(cohort_id, user_id=user_id))
        streak = compute_streak(by_day, now)
        calendar = compute_calendar(by_day, now)

        update_best_streak(self.store, user_id, cohort_id, streak)
        best = get_best_stats(self.store, user_id, cohort_id)

        submitted_today = date_key(now) in by_day
        return StreakSummary(
            user_id=user_id,
            cohort_id=cohort_id,
            streak=streak,
            calendar=calendar,
            best_streak=best["best_streak"],
            best_rank=best["best_rank"],
            at_risk=is_at_risk(submitted_today, now),
            minutes_until_deadline=minutes_until_deadline(now),
            computed_at=now,
        )
