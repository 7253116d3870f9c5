"""
Cohort health metrics for owners.

``compute_cohort_health`` is pure; ``CohortHealthService`` loads records and
enforces that only the cohort owner can look.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ibdaily.core.clock import add_days, date_key, last_n_days, parse_day_key
from ibdaily.core.errors import NotFoundError, NotMemberError, PermissionError
from ibdaily.features.store.base import Store
from ibdaily.features.store.memory import get_store
from ibdaily.features.streaks.calculator import compute_streak, index_by_day
from ibdaily.models.cohort import CohortMembership
from ibdaily.models.health import CohortHealth, DailyStats, MemberHealth, RetentionMetrics
from ibdaily.models.submission import Submission

ACTIVE_WITHIN_DAYS = 2
AT_RISK_WITHIN_DAYS = 6
RETENTION_OFFSETS = (1, 3, 7)

_STATUS_ORDER = {"inactive": 0, "at_risk": 1, "active": 2}


def percent(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 0 for an empty base."""
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (2 * whole)


def member_status(days_since_last: Optional[int]) -> str:
    if days_since_last is None:
        return "inactive"
    if days_since_last <= ACTIVE_WITHIN_DAYS:
        return "active"
    if days_since_last <= AT_RISK_WITHIN_DAYS:
        return "at_risk"
    return "inactive"


def _retention(by_user: Mapping[str, Iterable[str]], member_ids: Sequence[str], today: str) -> RetentionMetrics:
    retained = {k: 0 for k in RETENTION_OFFSETS}
    eligible = {k: 0 for k in RETENTION_OFFSETS}
    for user_id in member_ids:
        days = set(by_user.get(user_id, ()))
        if not days:
            continue
        first = min(days)
        for offset in RETENTION_OFFSETS:
            target = add_days(first, offset)
            if target > today:
                continue
            eligible[offset] += 1
            if target in days:
                retained[offset] += 1
    return RetentionMetrics(
        d1=percent(retained[1], eligible[1]),
        d3=percent(retained[3], eligible[3]),
        d7=percent(retained[7], eligible[7]),
    )


def compute_cohort_health(
    *,
    cohort_id: str,
    members: Sequence[CohortMembership],
    submissions: Iterable[Submission],
    now: Optional[datetime] = None,
    cohort_name: Optional[str] = None,
    display_names: Optional[Mapping[str, str]] = None,
) -> CohortHealth:
    """
    Engagement snapshot: 7-day daily stats, per-member health, D1/D3/D7 retention.

    Retention looks at all submissions; everything else at the last 30 days.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    today = date_key(now)
    last7 = last_n_days(7, now)
    last30 = set(last_n_days(30, now))
    names = display_names or {}
    member_ids = list(dict.fromkeys(m.user_id for m in members))
    member_set = set(member_ids)

    all_by_user: Dict[str, List[Submission]] = {}
    for submission in submissions:
        if submission.user_id in member_set:
            all_by_user.setdefault(submission.user_id, []).append(submission)

    total = len(member_ids)
    daily_stats = []
    for day in last7:
        submitted = sum(
            1 for uid in member_ids if any(s.date_key == day for s in all_by_user.get(uid, ()))
        )
        daily_stats.append(
            DailyStats(
                date_key=day,
                total_members=total,
                submitted_count=submitted,
                missed_count=total - submitted,
                submission_rate=percent(submitted, total),
            )
        )

    health: List[MemberHealth] = []
    for user_id in member_ids:
        history = all_by_user.get(user_id, [])
        recent_days = sorted({s.date_key for s in history if s.date_key in last30})
        last_day = recent_days[-1] if recent_days else None
        days_since = (parse_day_key(today) - parse_day_key(last_day)).days if last_day else None
        health.append(
            MemberHealth(
                user_id=user_id,
                display_name=names.get(user_id),
                current_streak=compute_streak(index_by_day(history), now),
                submissions_last_7_days=sum(1 for d in recent_days if d in last7),
                submissions_last_30_days=len(recent_days),
                last_submission_date=last_day,
                status=member_status(days_since),
            )
        )
    health.sort(key=lambda m: (_STATUS_ORDER[m.status], m.user_id))

    rates = [d.submission_rate for d in daily_stats]
    return CohortHealth(
        cohort_id=cohort_id,
        cohort_name=cohort_name,
        total_members=total,
        active_members=sum(1 for m in health if m.status == "active"),
        at_risk_members=sum(1 for m in health if m.status == "at_risk"),
        inactive_members=sum(1 for m in health if m.status == "inactive"),
        today_submission_rate=daily_stats[-1].submission_rate if daily_stats else 0,
        weekly_average_rate=percent(sum(rates), 100 * len(rates)) if rates else 0,
        daily_stats=daily_stats,
        member_health=health,
        retention=_retention(
            {uid: [s.date_key for s in subs] for uid, subs in all_by_user.items()},
            member_ids,
            today,
        ),
        computed_at=now,
    )


class CohortHealthService:
    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()

    def health(self, *, user_id: str, cohort_id: str, now: Optional[datetime] = None) -> CohortHealth:
        cohort = self.store.get_cohort(cohort_id)
        if cohort is None:
            raise NotFoundError("Cohort not found")
        membership = self.store.get_membership(user_id, cohort_id)
        if membership is None:
            raise NotMemberError()
        if membership.role != "OWNER":
            raise PermissionError("Only cohort owners can view health metrics")

        members = self.store.list_memberships(cohort_id)
        names = {}
        for member in members:
            user = self.store.get_user(member.user_id)
            if user is not None:
                names[member.user_id] = user.display_name

        return compute_cohort_health(
            cohort_id=cohort_id,
            members=members,
            submissions=self.store.list_submissions(cohort_id),
            now=now,
            cohort_name=cohort.name,
            display_names=names,
        )
