from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ibdaily.core.clock import last_n_days
from ibdaily.core.constants import LEADERBOARD_WINDOW_DAYS
from ibdaily.core.errors import NotFoundError, NotMemberError
from ibdaily.features.leaderboard.ranker import rank_members
from ibdaily.features.store.base import Store
from ibdaily.features.store.memory import get_store
from ibdaily.features.streaks.service import update_best_rank, update_best_streak
from ibdaily.models.leaderboard import LeaderboardResponse

logger = logging.getLogger("ibdaily.leaderboard")


class LeaderboardService:
    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()

    def leaderboard(
        self,
        *,
        cohort_id: str,
        now: Optional[datetime] = None,
        viewer_id: Optional[str] = None,
    ) -> LeaderboardResponse:
        """
        Rank every member over the trailing window and ratchet their best stats.

        When ``viewer_id`` is given the viewer must belong to the cohort.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        if self.store.get_cohort(cohort_id) is None:
            raise NotFoundError("Cohort not found")
        if viewer_id is not None and self.store.get_membership(viewer_id, cohort_id) is None:
            raise NotMemberError()

        member_ids = [m.user_id for m in self.store.list_memberships(cohort_id)]
        window = last_n_days(LEADERBOARD_WINDOW_DAYS, now)
        submissions = self.store.list_submissions(cohort_id, date_keys=window)

        names = {}
        for user_id in member_ids:
            user = self.store.get_user(user_id)
            if user is not None:
                names[user_id] = user.display_name

        entries = rank_members(member_ids, submissions, now, display_names=names)
        for entry in entries:
            update_best_streak(self.store, entry.user_id, cohort_id, entry.current_streak)
            update_best_rank(self.store, entry.user_id, cohort_id, entry.rank)

        logger.info("leaderboard.computed", extra={"cohort_id": cohort_id, "members": len(entries)})
        return LeaderboardResponse(cohort_id=cohort_id, entries=entries, computed_at=now)
