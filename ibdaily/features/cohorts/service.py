from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from ibdaily.core.errors import NotFoundError, NotMemberError, ValidationError
from ibdaily.features.cohorts.status import (
    compute_cohort_status,
    compute_trial_end_date,
    is_subscription_active,
    status_write_back,
)
from ibdaily.features.store.base import DuplicateRecordError, Store
from ibdaily.features.store.memory import get_store
from ibdaily.models.cohort import Cohort, CohortMembership, CohortStatusInfo

logger = logging.getLogger("ibdaily.cohorts")

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 6
_JOIN_CODE_ATTEMPTS = 10


def generate_join_code(length: int = JOIN_CODE_LENGTH) -> str:
    """Random code without the easily confused 0/O and 1/I."""
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def normalize_join_code(code: str) -> str:
    return (code or "").strip().upper()


class CohortService:
    """Cohort creation, joining and lazy status write-back."""

    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()

    def create_cohort(self, *, owner_id: str, name: str, now: Optional[datetime] = None) -> Cohort:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Cohort name is required")
        if now is None:
            now = datetime.now(timezone.utc)

        for _ in range(_JOIN_CODE_ATTEMPTS):
            cohort = Cohort(
                id=uuid4().hex,
                name=name,
                join_code=generate_join_code(),
                trial_ends_at=compute_trial_end_date(now),
                status="TRIAL",
                created_at=now,
            )
            try:
                self.store.create_cohort(cohort)
                break
            except DuplicateRecordError:
                logger.info("cohort.join_code_collision", extra={"join_code": cohort.join_code})
        else:
            raise RuntimeError("Could not allocate a unique join code")

        self.store.add_membership(
            CohortMembership(user_id=owner_id, cohort_id=cohort.id, role="OWNER", joined_at=now)
        )
        logger.info("cohort.created", extra={"cohort_id": cohort.id, "user_id": owner_id})
        return cohort

    def join_cohort(self, *, user_id: str, join_code: str, now: Optional[datetime] = None) -> dict:
        """Join by code. Joining twice is a no-op reported as ``already_member``."""
        code = normalize_join_code(join_code)
        if not code:
            raise ValidationError("Join code is required")
        cohort = self.store.find_cohort_by_join_code(code)
        if cohort is None:
            raise NotFoundError("Invalid join code")
        if now is None:
            now = datetime.now(timezone.utc)

        added = self.store.add_membership(
            CohortMembership(user_id=user_id, cohort_id=cohort.id, role="MEMBER", joined_at=now)
        )
        if added:
            logger.info("cohort.joined", extra={"cohort_id": cohort.id, "user_id": user_id})
        return {"cohort": cohort, "already_member": not added}

    def get_cohort(self, cohort_id: str) -> Cohort:
        cohort = self.store.get_cohort(cohort_id)
        if cohort is None:
            raise NotFoundError("Cohort not found")
        return cohort

    def require_membership(self, user_id: str, cohort_id: str) -> CohortMembership:
        membership = self.store.get_membership(user_id, cohort_id)
        if membership is None:
            raise NotMemberError()
        return membership

    def _count_paid(self, memberships, now: datetime) -> int:
        """Members holding an active, unexpired subscription."""
        return sum(
            1
            for membership in memberships
            if is_subscription_active(self.store.get_subscription(membership.user_id), now)
        )

    def refresh_status(self, cohort_id: str, now: Optional[datetime] = None) -> CohortStatusInfo:
        """
        Recompute the effective status and persist it if it moved.

        Concurrent refreshes may both write; the engine is idempotent so the
        worst case is a redundant write.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        cohort = self.get_cohort(cohort_id)
        memberships = self.store.list_memberships(cohort_id)
        paid = self._count_paid(memberships, now)

        info = compute_cohort_status(
            current_status=cohort.status,
            trial_ends_at=cohort.trial_ends_at,
            activated_at=cohort.activated_at,
            paid_count=paid,
            member_count=len(memberships),
            now=now,
        )

        fields = status_write_back(
            current_status=cohort.status,
            activated_at=cohort.activated_at,
            info=info,
            now=now,
        )
        if fields:
            self.store.update_cohort_status(cohort_id, **fields)
            logger.info(
                "cohort.status_changed",
                extra={"cohort_id": cohort_id, "from_status": cohort.status, "to_status": info.status},
            )
        return info
