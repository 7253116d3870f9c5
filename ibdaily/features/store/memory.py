"""
In-memory record store plus store selection.

Used by default and in tests. A single lock makes each operation atomic, which
is all the compare-and-set and claim semantics need.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ibdaily.features.store.base import DuplicateRecordError, Store
from ibdaily.models.cohort import Cohort, CohortMembership, CohortStatus, RatchetResult
from ibdaily.models.notification import NotificationPrefs, ReminderLogEntry
from ibdaily.models.subject import Subject, Unit, UserSubject, WeeklyUnitSelection
from ibdaily.models.submission import Submission
from ibdaily.models.user import Subscription, User

logger = logging.getLogger("ibdaily.store")


class InMemoryStore:
    def __init__(self):
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._subscriptions: Dict[str, Subscription] = {}
        self._cohorts: Dict[str, Cohort] = {}
        self._memberships: Dict[Tuple[str, str], CohortMembership] = {}
        self._submissions: Dict[Tuple[str, str, str], Submission] = {}
        self._prefs: Dict[str, NotificationPrefs] = {}
        self._reminder_logs: Set[ReminderLogEntry] = set()
        self._subjects: Dict[str, Subject] = {}
        self._units: Dict[str, Unit] = {}
        self._user_subjects: Dict[str, List[UserSubject]] = {}
        self._weekly_selections: Dict[Tuple[str, str, str], WeeklyUnitSelection] = {}

    # Users / subscriptions ---------------------------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def save_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = replace(user)
            return user

    def get_subscription(self, user_id: str) -> Optional[Subscription]:
        with self._lock:
            sub = self._subscriptions.get(user_id)
            return replace(sub) if sub else None

    def save_subscription(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscriptions[subscription.user_id] = replace(subscription)
            return subscription

    # Cohorts -----------------------------------------------------------
    def get_cohort(self, cohort_id: str) -> Optional[Cohort]:
        with self._lock:
            cohort = self._cohorts.get(cohort_id)
            return replace(cohort) if cohort else None

    def find_cohort_by_join_code(self, join_code: str) -> Optional[Cohort]:
        with self._lock:
            for cohort in self._cohorts.values():
                if cohort.join_code == join_code:
                    return replace(cohort)
            return None

    def list_cohorts(self, statuses: Optional[Iterable[CohortStatus]] = None) -> List[Cohort]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            return [
                replace(c)
                for c in sorted(self._cohorts.values(), key=lambda c: c.id)
                if wanted is None or c.status in wanted
            ]

    def create_cohort(self, cohort: Cohort) -> Cohort:
        with self._lock:
            if cohort.id in self._cohorts:
                raise DuplicateRecordError(f"Cohort {cohort.id} already exists")
            if any(c.join_code == cohort.join_code for c in self._cohorts.values()):
                raise DuplicateRecordError(f"Join code {cohort.join_code} already in use")
            self._cohorts[cohort.id] = replace(cohort)
            return cohort

    def update_cohort_status(self, cohort_id: str, **fields) -> Optional[Cohort]:
        allowed = {k: v for k, v in fields.items() if k in ("status", "activated_at")}
        with self._lock:
            cohort = self._cohorts.get(cohort_id)
            if cohort is None:
                return None
            updated = replace(cohort, **allowed)
            self._cohorts[cohort_id] = updated
            return replace(updated)

    # Memberships -------------------------------------------------------
    def get_membership(self, user_id: str, cohort_id: str) -> Optional[CohortMembership]:
        with self._lock:
            membership = self._memberships.get((user_id, cohort_id))
            return replace(membership) if membership else None

    def list_memberships(self, cohort_id: str) -> List[CohortMembership]:
        with self._lock:
            return [
                replace(m)
                for (_, cid), m in sorted(self._memberships.items())
                if cid == cohort_id
            ]

    def add_membership(self, membership: CohortMembership) -> bool:
        key = (membership.user_id, membership.cohort_id)
        with self._lock:
            if key in self._memberships:
                return False
            self._memberships[key] = replace(membership)
            return True

    def raise_best_streak(self, user_id: str, cohort_id: str, value: int) -> RatchetResult:
        with self._lock:
            membership = self._memberships.get((user_id, cohort_id))
            if membership is None:
                return RatchetResult(updated=False, value=0)
            if value > membership.best_streak:
                membership.best_streak = value
                return RatchetResult(updated=True, value=value)
            return RatchetResult(updated=False, value=membership.best_streak)

    def lower_best_rank(self, user_id: str, cohort_id: str, value: int) -> RatchetResult:
        with self._lock:
            membership = self._memberships.get((user_id, cohort_id))
            if membership is None:
                return RatchetResult(updated=False, value=None)
            if membership.best_rank is None or value < membership.best_rank:
                membership.best_rank = value
                return RatchetResult(updated=True, value=value)
            return RatchetResult(updated=False, value=membership.best_rank)

    # Submissions -------------------------------------------------------
    def get_submission(self, user_id: str, cohort_id: str, date_key: str) -> Optional[Submission]:
        with self._lock:
            return self._submissions.get((user_id, cohort_id, date_key))

    def list_submissions(
        self,
        cohort_id: str,
        *,
        user_id: Optional[str] = None,
        date_keys: Optional[Iterable[str]] = None,
    ) -> List[Submission]:
        days = set(date_keys) if date_keys is not None else None
        with self._lock:
            return [
                s
                for key, s in sorted(self._submissions.items())
                if s.cohort_id == cohort_id
                and (user_id is None or s.user_id == user_id)
                and (days is None or s.date_key in days)
            ]

    def upsert_submission(self, submission: Submission) -> Submission:
        key = (submission.user_id, submission.cohort_id, submission.date_key)
        with self._lock:
            self._submissions[key] = submission
            return submission

    # Subjects / units ----------------------------------------------------
    def list_subjects(self) -> List[Subject]:
        with self._lock:
            return sorted(self._subjects.values(), key=lambda s: (s.group_number, s.full_name))

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        with self._lock:
            return self._subjects.get(subject_id)

    def save_subject(self, subject: Subject) -> Subject:
        with self._lock:
            self._subjects[subject.id] = subject
            return subject

    def list_units(self, subject_id: str) -> List[Unit]:
        with self._lock:
            return sorted(
                (u for u in self._units.values() if u.subject_id == subject_id),
                key=lambda u: u.order_index,
            )

    def save_unit(self, unit: Unit) -> Unit:
        with self._lock:
            self._units[unit.id] = unit
            return unit

    def list_user_subjects(self, user_id: str) -> List[UserSubject]:
        with self._lock:
            return list(self._user_subjects.get(user_id, ()))

    def replace_user_subjects(self, user_id: str, selections: Iterable[UserSubject]) -> List[UserSubject]:
        with self._lock:
            self._user_subjects[user_id] = list(selections)
            return list(self._user_subjects[user_id])

    def get_weekly_selection(self, user_id: str, subject_id: str, week_start_date_key: str) -> Optional[WeeklyUnitSelection]:
        with self._lock:
            return self._weekly_selections.get((user_id, subject_id, week_start_date_key))

    def list_weekly_selections(self, user_id: str, week_start_date_key: str) -> List[WeeklyUnitSelection]:
        with self._lock:
            return [
                s
                for (uid, _, week), s in sorted(self._weekly_selections.items())
                if uid == user_id and week == week_start_date_key
            ]

    def create_weekly_selection(self, selection: WeeklyUnitSelection) -> bool:
        key = (selection.user_id, selection.subject_id, selection.week_start_date_key)
        with self._lock:
            if key in self._weekly_selections:
                return False
            self._weekly_selections[key] = selection
            return True

    # Notifications -----------------------------------------------------
    def get_notification_prefs(self, user_id: str) -> Optional[NotificationPrefs]:
        with self._lock:
            prefs = self._prefs.get(user_id)
            return replace(prefs) if prefs else None

    def save_notification_prefs(self, prefs: NotificationPrefs) -> NotificationPrefs:
        with self._lock:
            self._prefs[prefs.user_id] = replace(prefs)
            return prefs

    def list_reminder_logs(self, date_key: str) -> List[ReminderLogEntry]:
        with self._lock:
            return sorted(
                (e for e in self._reminder_logs if e.date_key == date_key),
                key=lambda e: (e.user_id, e.cohort_id, e.type),
            )

    def try_claim_reminder(self, entry: ReminderLogEntry) -> bool:
        with self._lock:
            if entry in self._reminder_logs:
                return False
            self._reminder_logs.add(entry)
            return True

    def release_reminder(self, entry: ReminderLogEntry) -> None:
        with self._lock:
            self._reminder_logs.discard(entry)


def get_default_store() -> Store:
    """
    Pick the store implementation.

    - SQL store when DATABASE_URL is configured and reachable
    - in-memory otherwise
    """
    if os.getenv("DATABASE_URL"):
        try:
            from ibdaily.features.store.pg import SqlStore
            from ibdaily.core.database import check_connection, create_all_tables

            if check_connection():
                create_all_tables()
                return SqlStore()
            logger.warning("[store] database unavailable, falling back to in-memory")
        except Exception as exc:
            logger.warning("[store] failed to initialize SQL store, falling back to in-memory", extra={"error_message": str(exc)})

    return InMemoryStore()


_store_instance: Optional[Store] = None


def get_store() -> Store:
    """
    Get the singleton store instance.

    This is the primary API that services and routes should use.
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = get_default_store()
    return _store_instance


def set_store(store: Store) -> None:
    global _store_instance
    _store_instance = store


def reset_store() -> None:
    """
    Reset the store instance.

    FOR TESTING ONLY - forces re-initialization on next get_store() call.
    """
    global _store_instance
    _store_instance = None
