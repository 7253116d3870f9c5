"""
Record store protocol.

Defines the narrow lookups the services need. Implementations hold no
business rules, so the in-memory and SQL stores are interchangeable.
"""
from typing import Iterable, List, Optional, Protocol

from ibdaily.models.cohort import Cohort, CohortMembership, CohortStatus, RatchetResult
from ibdaily.models.notification import NotificationPrefs, ReminderLogEntry
from ibdaily.models.subject import Subject, Unit, UserSubject, WeeklyUnitSelection
from ibdaily.models.submission import Submission
from ibdaily.models.user import Subscription, User


class Store(Protocol):
    """
    Protocol for record stores.

    Implementations must guarantee:
    - one submission per (user, cohort, day), upserts replace content and created_at
    - one membership per (user, cohort)
    - best-stat ratchets are compare-and-set: only strictly better values land
    - one reminder log row per (user, cohort, day, type); a second claim returns False
    - one weekly unit pick per (user, subject, week)
    """

    # Users / subscriptions ---------------------------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    def save_user(self, user: User) -> User:
        ...

    def get_subscription(self, user_id: str) -> Optional[Subscription]:
        ...

    def save_subscription(self, subscription: Subscription) -> Subscription:
        ...

    # Cohorts -----------------------------------------------------------
    def get_cohort(self, cohort_id: str) -> Optional[Cohort]:
        ...

    def find_cohort_by_join_code(self, join_code: str) -> Optional[Cohort]:
        ...

    def list_cohorts(self, statuses: Optional[Iterable[CohortStatus]] = None) -> List[Cohort]:
        ...

    def create_cohort(self, cohort: Cohort) -> Cohort:
        """
        Raises:
            DuplicateRecordError: If the id or join code is taken
        """
        ...

    def update_cohort_status(self, cohort_id: str, **fields) -> Optional[Cohort]:
        """Persist ``status`` and/or ``activated_at``."""
        ...

    # Memberships -------------------------------------------------------
    def get_membership(self, user_id: str, cohort_id: str) -> Optional[CohortMembership]:
        ...

    def list_memberships(self, cohort_id: str) -> List[CohortMembership]:
        ...

    def add_membership(self, membership: CohortMembership) -> bool:
        """Insert; returns False if the user already belongs to the cohort."""
        ...

    def raise_best_streak(self, user_id: str, cohort_id: str, value: int) -> RatchetResult:
        ...

    def lower_best_rank(self, user_id: str, cohort_id: str, value: int) -> RatchetResult:
        ...

    # Submissions -------------------------------------------------------
    def get_submission(self, user_id: str, cohort_id: str, date_key: str) -> Optional[Submission]:
        ...

    def list_submissions(
        self,
        cohort_id: str,
        *,
        user_id: Optional[str] = None,
        date_keys: Optional[Iterable[str]] = None,
    ) -> List[Submission]:
        ...

    def upsert_submission(self, submission: Submission) -> Submission:
        ...

    # Subjects / units ----------------------------------------------------
    def list_subjects(self) -> List[Subject]:
        """Ordered by IB group number, then full name."""
        ...

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        ...

    def save_subject(self, subject: Subject) -> Subject:
        ...

    def list_units(self, subject_id: str) -> List[Unit]:
        """Ordered by ``order_index``."""
        ...

    def save_unit(self, unit: Unit) -> Unit:
        ...

    def list_user_subjects(self, user_id: str) -> List[UserSubject]:
        ...

    def replace_user_subjects(self, user_id: str, selections: Iterable[UserSubject]) -> List[UserSubject]:
        """Swap the user's whole subject set in one step."""
        ...

    def get_weekly_selection(self, user_id: str, subject_id: str, week_start_date_key: str) -> Optional[WeeklyUnitSelection]:
        ...

    def list_weekly_selections(self, user_id: str, week_start_date_key: str) -> List[WeeklyUnitSelection]:
        ...

    def create_weekly_selection(self, selection: WeeklyUnitSelection) -> bool:
        """Insert; False if that subject already has a pick for the week."""
        ...

    # Notifications -----------------------------------------------------
    def get_notification_prefs(self, user_id: str) -> Optional[NotificationPrefs]:
        ...

    def save_notification_prefs(self, prefs: NotificationPrefs) -> NotificationPrefs:
        ...

    def list_reminder_logs(self, date_key: str) -> List[ReminderLogEntry]:
        ...

    def try_claim_reminder(self, entry: ReminderLogEntry) -> bool:
        """Insert the log row. False means another sweep already claimed it."""
        ...

    def release_reminder(self, entry: ReminderLogEntry) -> None:
        """Drop a claim whose delivery failed so a later sweep can retry."""
        ...


class StoreError(Exception):
    """Base exception for store errors."""
    pass


class DuplicateRecordError(StoreError):
    """A unique key is already taken."""
    pass
