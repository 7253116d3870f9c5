from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ibdaily.core.clock import (
    date_key,
    format_time_remaining,
    is_deadline_passed,
    on_time,
    previous_day_key,
    time_until_deadline,
)
from ibdaily.core.errors import CohortLockedError, NotMemberError, ValidationError
from ibdaily.core.logging import log_event
from ibdaily.features.cohorts.service import CohortService
from ibdaily.features.quality.checker import check_submission_quality
from ibdaily.features.store.base import Store
from ibdaily.features.store.memory import get_store
from ibdaily.features.subjects.service import SubjectService
from ibdaily.models.submission import Submission, SubmissionResult

MAX_BULLETS = 3
LOCKED_MESSAGE = "Cohort trial has ended. Activate the cohort to keep submitting."


def to_result(submission: Submission) -> SubmissionResult:
    return SubmissionResult(
        user_id=submission.user_id,
        cohort_id=submission.cohort_id,
        date_key=submission.date_key,
        created_at=submission.created_at,
        bullets=list(submission.bullets),
        subject=submission.subject,
        subject_id=submission.subject_id,
        quality_status=submission.quality_status,
        quality_reasons=list(submission.quality_reasons),
        on_time=on_time(submission.created_at, submission.date_key),
    )


def _clean_bullets(bullets: Sequence[str]) -> List[str]:
    if len(bullets) > MAX_BULLETS:
        raise ValidationError(f"At most {MAX_BULLETS} bullets are allowed")
    return [(b or "").strip() for b in bullets]


class SubmissionService:
    """Daily learning-log writes and today's view."""

    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()
        self.cohorts = CohortService(self.store)

    def submit(
        self,
        *,
        user_id: str,
        cohort_id: str,
        bullets: Sequence[str],
        subject_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        """
        Upsert today's submission.

        Raises:
            ValidationError: Bullets fail blocking validation, or the subject
                is not one of the user's subjects
            NotMemberError: Caller is not in the cohort
            CohortLockedError: Trial ended without activation
        """
        if now is None:
            now = datetime.now(timezone.utc)
        cleaned = _clean_bullets(bullets)
        today = date_key(now)

        yesterday = self.store.get_submission(user_id, cohort_id, previous_day_key(today))
        quality = check_submission_quality(cleaned, yesterday.bullets if yesterday else None)
        if quality.is_blocked:
            log_event(
                "info",
                "submission.blocked",
                user_id=user_id,
                cohort_id=cohort_id,
                date_key=today,
                error_code="validation_error",
                extra={"errors": quality.validation_errors},
            )
            raise ValidationError("Submission failed validation", details=quality.validation_errors)

        if self.store.get_membership(user_id, cohort_id) is None:
            raise NotMemberError()

        status = self.cohorts.refresh_status(cohort_id, now)
        if not status.can_submit:
            raise CohortLockedError(LOCKED_MESSAGE)

        subject_label = SubjectService(self.store).subject_label(user_id, subject_id) if subject_id else None

        submission = Submission(
            user_id=user_id,
            cohort_id=cohort_id,
            date_key=today,
            created_at=now,
            bullets=tuple(cleaned),
            quality_status=quality.status,
            quality_reasons=tuple(quality.reasons),
            subject=subject_label,
            subject_id=subject_id,
        )
        self.store.upsert_submission(submission)

        result = to_result(submission)
        log_event(
            "info",
            "submission.saved",
            user_id=user_id,
            cohort_id=cohort_id,
            date_key=today,
            event_type="submission",
            extra={"quality_status": quality.status, "on_time": result.on_time},
        )
        return result

    def today(self, *, user_id: str, cohort_id: str, now: Optional[datetime] = None) -> dict:
        """Today's submission (if any) with the cohort gate and countdown."""
        if now is None:
            now = datetime.now(timezone.utc)
        if self.store.get_membership(user_id, cohort_id) is None:
            raise NotMemberError()

        status = self.cohorts.refresh_status(cohort_id, now)
        today = date_key(now)
        submission = self.store.get_submission(user_id, cohort_id, today)
        return {
            "date_key": today,
            "submission": to_result(submission) if submission else None,
            "cohort_status": status,
            "lock_reason": None if status.can_submit else LOCKED_MESSAGE,
            "deadline_passed": is_deadline_passed(now),
            "time_remaining": format_time_remaining(time_until_deadline(now)),
        }
