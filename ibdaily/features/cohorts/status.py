"""
Cohort lifecycle: TRIAL -> ACTIVE (permanent) or TRIAL -> LOCKED.

Pure functions only. Persisting the derived status is the caller's job, see
``CohortService.refresh_status``.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from ibdaily.core.constants import (
    ACTIVATION_THRESHOLD,
    COUNTER_VISIBILITY_THRESHOLD,
    TRIAL_DAYS,
)
from ibdaily.models.cohort import CohortStatus, CohortStatusInfo
from ibdaily.models.user import Subscription

_DAY_SECONDS = 24 * 60 * 60


def compute_cohort_status(
    *,
    current_status: CohortStatus,
    trial_ends_at: datetime,
    activated_at: Optional[datetime],
    paid_count: int,
    member_count: int,
    now: Optional[datetime] = None,
    activation_threshold: int = ACTIVATION_THRESHOLD,
    counter_visibility_threshold: int = COUNTER_VISIBILITY_THRESHOLD,
) -> CohortStatusInfo:
    """
    Derive the effective status. First matching rule wins:

    1. already ACTIVE or ever activated -> ACTIVE (never reverts)
    2. ``paid_count >= activation_threshold`` -> ACTIVE, stamping ``activated_at = now``
    3. trial over -> LOCKED
    4. otherwise TRIAL

    Same inputs + same now => identical output.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    is_trial_expired = now > trial_ends_at
    remaining_seconds = (trial_ends_at - now).total_seconds()
    days_until_trial_end = max(0, math.ceil(remaining_seconds / _DAY_SECONDS))

    effective_activated_at = activated_at
    status: CohortStatus
    if current_status == "ACTIVE" or activated_at is not None:
        status = "ACTIVE"
    elif paid_count >= activation_threshold:
        status = "ACTIVE"
        effective_activated_at = now
    elif is_trial_expired:
        status = "LOCKED"
    else:
        status = "TRIAL"

    return CohortStatusInfo(
        status=status,
        trial_ends_at=trial_ends_at,
        activated_at=effective_activated_at,
        paid_count=paid_count,
        member_count=member_count,
        is_trial_expired=is_trial_expired,
        days_until_trial_end=days_until_trial_end,
        show_activation_counter=paid_count >= counter_visibility_threshold,
        can_submit=status != "LOCKED",
    )


def status_write_back(
    *,
    current_status: CohortStatus,
    activated_at: Optional[datetime],
    info: CohortStatusInfo,
    now: datetime,
) -> Optional[dict]:
    """
    Fields to persist after a recomputation, or None when nothing changed.

    ``activated_at`` is only stamped on a move into ACTIVE and never overwritten.
    """
    if info.status == current_status:
        return None
    fields = {"status": info.status}
    if info.status == "ACTIVE" and activated_at is None:
        fields["activated_at"] = info.activated_at or now
    return fields


def is_subscription_active(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    """Paid iff status is "active" and the current period has not ended."""
    if subscription is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    return subscription.status == "active" and subscription.current_period_end > now


def compute_trial_end_date(created_at: datetime, *, trial_days: int = TRIAL_DAYS) -> datetime:
    return created_at + timedelta(days=trial_days)


def format_days_remaining(days: int) -> str:
    if days == 0:
        return "Trial ends today"
    if days == 1:
        return "1 day left in trial"
    return f"{days} days left in trial"


def get_activation_counter_text(
    paid_count: int,
    *,
    activation_threshold: int = ACTIVATION_THRESHOLD,
    counter_visibility_threshold: int = COUNTER_VISIBILITY_THRESHOLD,
) -> Optional[str]:
    if paid_count < counter_visibility_threshold:
        return None
    return f"Activation: {paid_count}/{activation_threshold}"
