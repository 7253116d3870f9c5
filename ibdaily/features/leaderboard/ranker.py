"""
Cohort leaderboard ranking.

Pure function: same members + same submissions + same now => identical order.
Order: current streak desc, on-time GOOD count desc, latest submission asc
(earlier wins, members without submissions last), then user_id asc.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ibdaily.core.clock import last_n_days, on_time
from ibdaily.core.constants import (
    LEADERBOARD_WINDOW_DAYS,
    MIDDLE_TIER_PERCENTILE,
    TOP_TIER_PERCENTILE,
)
from ibdaily.features.streaks.calculator import compute_streak, index_by_day
from ibdaily.models.leaderboard import LeaderboardEntry, LeaderboardTier
from ibdaily.models.submission import Submission


@dataclass(frozen=True)
class MemberStats:
    user_id: str
    current_streak: int
    on_time_count: int
    latest_submission_time: Optional[datetime]

    def sort_key(self):
        latest = self.latest_submission_time
        if latest is not None and latest.tzinfo is None:
            latest = latest.replace(tzinfo=timezone.utc)
        return (
            -self.current_streak,
            -self.on_time_count,
            latest is None,
            latest.timestamp() if latest is not None else 0.0,
            self.user_id,
        )


def calculate_tier(rank: int, total: int) -> LeaderboardTier:
    """Top 20%, middle 60%, catching up 20%. Tiny cohorts are all TOP."""
    if total <= 2:
        return "TOP"
    percentile = rank / total
    if percentile <= TOP_TIER_PERCENTILE:
        return "TOP"
    if percentile <= MIDDLE_TIER_PERCENTILE:
        return "MIDDLE"
    return "CATCHING_UP"


def member_stats(
    user_id: str,
    submissions: Sequence[Submission],
    now: datetime,
) -> MemberStats:
    """Stats from a member's in-window submissions."""
    on_time_good = sum(
        1
        for s in submissions
        if s.quality_status == "GOOD" and on_time(s.created_at, s.date_key)
    )
    latest = max((s.created_at for s in submissions), default=None)
    return MemberStats(
        user_id=user_id,
        current_streak=compute_streak(index_by_day(submissions), now),
        on_time_count=on_time_good,
        latest_submission_time=latest,
    )


def rank_members(
    member_ids: Iterable[str],
    submissions: Iterable[Submission],
    now: Optional[datetime] = None,
    *,
    window_days: int = LEADERBOARD_WINDOW_DAYS,
    display_names: Optional[Mapping[str, str]] = None,
) -> List[LeaderboardEntry]:
    """
    Rank every member using only submissions from the trailing window.

    Members with no submissions still appear (streak 0, latest None).
    """
    if now is None:
        now = datetime.now(timezone.utc)

    window = set(last_n_days(window_days, now))
    grouped: Dict[str, List[Submission]] = {}
    for submission in submissions:
        if submission.date_key in window:
            grouped.setdefault(submission.user_id, []).append(submission)

    unique_ids = list(dict.fromkeys(member_ids))
    stats = [member_stats(uid, grouped.get(uid, []), now) for uid in unique_ids]
    stats.sort(key=MemberStats.sort_key)

    names = display_names or {}
    total = len(stats)
    return [
        LeaderboardEntry(
            user_id=item.user_id,
            rank=position,
            tier=calculate_tier(position, total),
            current_streak=item.current_streak,
            on_time_count_30_days=item.on_time_count,
            latest_submission_time=item.latest_submission_time,
            display_name=names.get(item.user_id),
        )
        for position, item in enumerate(stats, start=1)
    ]
