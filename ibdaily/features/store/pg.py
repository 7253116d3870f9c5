"""
SQL-backed record store on SQLAlchemy Core.

Same interface as ``InMemoryStore``. Unique constraints carry the
concurrency guarantees: submission upserts, membership inserts and reminder
claims all lean on them, and the best-stat ratchets are conditional UPDATEs.
"""
import json
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError

from ibdaily.core.database import (
    cohort_members,
    cohorts,
    get_db_session,
    notification_prefs,
    reminder_logs,
    subjects,
    submissions,
    subscriptions,
    units,
    user_subjects,
    users,
    weekly_unit_selections,
)
from ibdaily.features.store.base import DuplicateRecordError
from ibdaily.models.cohort import Cohort, CohortMembership, CohortStatus, RatchetResult
from ibdaily.models.notification import NotificationPrefs, ReminderLogEntry
from ibdaily.models.subject import Subject, Unit, UserSubject, WeeklyUnitSelection
from ibdaily.models.submission import Submission
from ibdaily.models.user import Subscription, User

_UPSERT_ATTEMPTS = 3


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back out
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # Normalized before writing so backends without tz support keep the instant
    if value is None:
        return None
    return _aware(value).astimezone(timezone.utc)


def _user(row) -> User:
    return User(
        id=row.id,
        email=row.email or "",
        name=row.name,
        onboarding_completed=bool(row.onboarding_completed),
        created_at=_aware(row.created_at),
    )


def _cohort(row) -> Cohort:
    return Cohort(
        id=row.id,
        name=row.name,
        join_code=row.join_code,
        trial_ends_at=_aware(row.trial_ends_at),
        status=row.status,
        activated_at=_aware(row.activated_at),
        created_at=_aware(row.created_at),
    )


def _membership(row) -> CohortMembership:
    return CohortMembership(
        user_id=row.user_id,
        cohort_id=row.cohort_id,
        role=row.role,
        joined_at=_aware(row.joined_at),
        best_streak=row.best_streak or 0,
        best_rank=row.best_rank,
    )


def _submission(row) -> Submission:
    bullets = tuple(b for b in (row.bullet1, row.bullet2, row.bullet3))
    while bullets and not bullets[-1]:
        bullets = bullets[:-1]
    return Submission(
        user_id=row.user_id,
        cohort_id=row.cohort_id,
        date_key=row.date_key,
        created_at=_aware(row.created_at),
        bullets=bullets,
        quality_status=row.quality_status,
        quality_reasons=tuple(json.loads(row.quality_reasons or "[]")),
        subject=row.subject,
        subject_id=row.subject_id,
    )


def _submission_values(submission: Submission) -> dict:
    padded = (list(submission.bullets) + ["", "", ""])[:3]
    return {
        "subject": submission.subject,
        "subject_id": submission.subject_id,
        "bullet1": padded[0],
        "bullet2": padded[1],
        "bullet3": padded[2],
        "quality_status": submission.quality_status,
        "quality_reasons": json.dumps(list(submission.quality_reasons)),
        "created_at": _utc(submission.created_at),
    }


def _subject(row) -> Subject:
    return Subject(
        id=row.id,
        subject_code=row.subject_code,
        transcript_name=row.transcript_name,
        full_name=row.full_name,
        group_name=row.group_name,
        group_number=row.group_number,
        sl_available=bool(row.sl_available),
        hl_available=bool(row.hl_available),
        has_units=bool(row.has_units),
    )


def _unit(row) -> Unit:
    return Unit(
        id=row.id,
        subject_id=row.subject_id,
        name=row.name,
        order_index=row.order_index,
        level_scope=row.level_scope,
    )


def _user_subject(row) -> UserSubject:
    return UserSubject(user_id=row.user_id, subject_id=row.subject_id, level=row.level, created_at=_aware(row.created_at))


def _weekly_selection(row) -> WeeklyUnitSelection:
    return WeeklyUnitSelection(
        user_id=row.user_id,
        subject_id=row.subject_id,
        unit_id=row.unit_id,
        week_start_date_key=row.week_start_date_key,
        created_at=_aware(row.created_at),
    )


def _member_key(user_id: str, cohort_id: str):
    return and_(cohort_members.c.user_id == user_id, cohort_members.c.cohort_id == cohort_id)


def _claim_key(entry: ReminderLogEntry):
    return and_(
        reminder_logs.c.user_id == entry.user_id,
        reminder_logs.c.cohort_id == entry.cohort_id,
        reminder_logs.c.date_key == entry.date_key,
        reminder_logs.c.type == entry.type,
    )


class SqlStore:
    """Store backed by the tables in ``ibdaily.core.database``."""

    # Users / subscriptions ---------------------------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        with get_db_session() as session:
            row = session.execute(select(users).where(users.c.id == user_id)).first()
            return _user(row) if row else None

    def save_user(self, user: User) -> User:
        values = {"email": user.email, "name": user.name, "onboarding_completed": user.onboarding_completed}
        with get_db_session() as session:
            result = session.execute(update(users).where(users.c.id == user.id).values(**values))
            if result.rowcount == 0:
                created = {"created_at": _utc(user.created_at)} if user.created_at else {}
                session.execute(insert(users).values(id=user.id, **values, **created))
        return user

    def get_subscription(self, user_id: str) -> Optional[Subscription]:
        with get_db_session() as session:
            row = session.execute(select(subscriptions).where(subscriptions.c.user_id == user_id)).first()
            if row is None:
                return None
            return Subscription(
                user_id=row.user_id,
                status=row.status,
                current_period_end=_aware(row.current_period_end),
            )

    def save_subscription(self, subscription: Subscription) -> Subscription:
        values = {"status": subscription.status, "current_period_end": _utc(subscription.current_period_end)}
        with get_db_session() as session:
            result = session.execute(
                update(subscriptions).where(subscriptions.c.user_id == subscription.user_id).values(**values)
            )
            if result.rowcount == 0:
                session.execute(insert(subscriptions).values(user_id=subscription.user_id, **values))
        return subscription

    # Cohorts -----------------------------------------------------------
    def get_cohort(self, cohort_id: str) -> Optional[Cohort]:
        with get_db_session() as session:
            row = session.execute(select(cohorts).where(cohorts.c.id == cohort_id)).first()
            return _cohort(row) if row else None

    def find_cohort_by_join_code(self, join_code: str) -> Optional[Cohort]:
        with get_db_session() as session:
            row = session.execute(select(cohorts).where(cohorts.c.join_code == join_code)).first()
            return _cohort(row) if row else None

    def list_cohorts(self, statuses: Optional[Iterable[CohortStatus]] = None) -> List[Cohort]:
        query = select(cohorts).order_by(cohorts.c.id)
        if statuses is not None:
            query = query.where(cohorts.c.status.in_(list(statuses)))
        with get_db_session() as session:
            return [_cohort(row) for row in session.execute(query)]

    def create_cohort(self, cohort: Cohort) -> Cohort:
        values = {
            "id": cohort.id,
            "name": cohort.name,
            "join_code": cohort.join_code,
            "status": cohort.status,
            "trial_ends_at": _utc(cohort.trial_ends_at),
            "activated_at": _utc(cohort.activated_at),
        }
        if cohort.created_at:
            values["created_at"] = _utc(cohort.created_at)
        try:
            with get_db_session() as session:
                session.execute(insert(cohorts).values(**values))
        except IntegrityError as exc:
            raise DuplicateRecordError(f"Cohort {cohort.id} or join code {cohort.join_code} already exists") from exc
        return cohort

    def update_cohort_status(self, cohort_id: str, **fields) -> Optional[Cohort]:
        values = {k: _utc(v) if k == "activated_at" else v for k, v in fields.items() if k in ("status", "activated_at")}
        with get_db_session() as session:
            if values:
                session.execute(update(cohorts).where(cohorts.c.id == cohort_id).values(**values))
            row = session.execute(select(cohorts).where(cohorts.c.id == cohort_id)).first()
            return _cohort(row) if row else None

    # Memberships -------------------------------------------------------
    def get_membership(self, user_id: str, cohort_id: str) -> Optional[CohortMembership]:
        with get_db_session() as session:
            row = session.execute(select(cohort_members).where(_member_key(user_id, cohort_id))).first()
            return _membership(row) if row else None

    def list_memberships(self, cohort_id: str) -> List[CohortMembership]:
        query = (
            select(cohort_members)
            .where(cohort_members.c.cohort_id == cohort_id)
            .order_by(cohort_members.c.user_id)
        )
        with get_db_session() as session:
            return [_membership(row) for row in session.execute(query)]

    def add_membership(self, membership: CohortMembership) -> bool:
        values = {
            "user_id": membership.user_id,
            "cohort_id": membership.cohort_id,
            "role": membership.role,
            "best_streak": membership.best_streak,
            "best_rank": membership.best_rank,
        }
        if membership.joined_at:
            values["joined_at"] = _utc(membership.joined_at)
        try:
            with get_db_session() as session:
                session.execute(insert(cohort_members).values(**values))
            return True
        except IntegrityError:
            return False

    def raise_best_streak(self, user_id: str, cohort_id: str, value: int) -> RatchetResult:
        with get_db_session() as session:
            result = session.execute(
                update(cohort_members)
                .where(and_(_member_key(user_id, cohort_id), cohort_members.c.best_streak < value))
                .values(best_streak=value)
            )
            if result.rowcount:
                return RatchetResult(updated=True, value=value)
            current = session.execute(
                select(cohort_members.c.best_streak).where(_member_key(user_id, cohort_id))
            ).scalar()
            return RatchetResult(updated=False, value=current or 0)

    def lower_best_rank(self, user_id: str, cohort_id: str, value: int) -> RatchetResult:
        with get_db_session() as session:
            result = session.execute(
                update(cohort_members)
                .where(
                    and_(
                        _member_key(user_id, cohort_id),
                        or_(cohort_members.c.best_rank.is_(None), cohort_members.c.best_rank > value),
                    )
                )
                .values(best_rank=value)
            )
            if result.rowcount:
                return RatchetResult(updated=True, value=value)
            current = session.execute(
                select(cohort_members.c.best_rank).where(_member_key(user_id, cohort_id))
            ).scalar()
            return RatchetResult(updated=False, value=current)

    # Submissions -------------------------------------------------------
    def get_submission(self, user_id: str, cohort_id: str, date_key: str) -> Optional[Submission]:
        query = select(submissions).where(
            and_(
                submissions.c.user_id == user_id,
                submissions.c.cohort_id == cohort_id,
                submissions.c.date_key == date_key,
            )
        )
        with get_db_session() as session:
            row = session.execute(query).first()
            return _submission(row) if row else None

    def list_submissions(
        self,
        cohort_id: str,
        *,
        user_id: Optional[str] = None,
        date_keys: Optional[Iterable[str]] = None,
    ) -> List[Submission]:
        filters = [submissions.c.cohort_id == cohort_id]
        if user_id is not None:
            filters.append(submissions.c.user_id == user_id)
        if date_keys is not None:
            filters.append(submissions.c.date_key.in_(list(date_keys)))
        query = (
            select(submissions)
            .where(and_(*filters))
            .order_by(submissions.c.user_id, submissions.c.date_key)
        )
        with get_db_session() as session:
            return [_submission(row) for row in session.execute(query)]

    def upsert_submission(self, submission: Submission) -> Submission:
        key = and_(
            submissions.c.user_id == submission.user_id,
            submissions.c.cohort_id == submission.cohort_id,
            submissions.c.date_key == submission.date_key,
        )
        values = _submission_values(submission)
        # A concurrent insert can win the race between our UPDATE and INSERT;
        # the retry then lands on the UPDATE branch.
        for attempt in range(_UPSERT_ATTEMPTS):
            try:
                with get_db_session() as session:
                    result = session.execute(update(submissions).where(key).values(**values))
                    if result.rowcount == 0:
                        session.execute(
                            insert(submissions).values(
                                user_id=submission.user_id,
                                cohort_id=submission.cohort_id,
                                date_key=submission.date_key,
                                **values,
                            )
                        )
                return submission
            except IntegrityError:
                if attempt == _UPSERT_ATTEMPTS - 1:
                    raise
        return submission

    # Subjects / units ----------------------------------------------------
    def list_subjects(self) -> List[Subject]:
        query = select(subjects).order_by(subjects.c.group_number, subjects.c.full_name)
        with get_db_session() as session:
            return [_subject(row) for row in session.execute(query)]

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        with get_db_session() as session:
            row = session.execute(select(subjects).where(subjects.c.id == subject_id)).first()
            return _subject(row) if row else None

    def save_subject(self, subject: Subject) -> Subject:
        values = {
            "subject_code": subject.subject_code,
            "transcript_name": subject.transcript_name,
            "full_name": subject.full_name,
            "group_name": subject.group_name,
            "group_number": subject.group_number,
            "sl_available": subject.sl_available,
            "hl_available": subject.hl_available,
            "has_units": subject.has_units,
        }
        with get_db_session() as session:
            result = session.execute(update(subjects).where(subjects.c.id == subject.id).values(**values))
            if result.rowcount == 0:
                session.execute(insert(subjects).values(id=subject.id, **values))
        return subject

    def list_units(self, subject_id: str) -> List[Unit]:
        query = select(units).where(units.c.subject_id == subject_id).order_by(units.c.order_index)
        with get_db_session() as session:
            return [_unit(row) for row in session.execute(query)]

    def save_unit(self, unit: Unit) -> Unit:
        values = {
            "subject_id": unit.subject_id,
            "name": unit.name,
            "order_index": unit.order_index,
            "level_scope": unit.level_scope,
        }
        with get_db_session() as session:
            result = session.execute(update(units).where(units.c.id == unit.id).values(**values))
            if result.rowcount == 0:
                session.execute(insert(units).values(id=unit.id, **values))
        return unit

    def list_user_subjects(self, user_id: str) -> List[UserSubject]:
        query = select(user_subjects).where(user_subjects.c.user_id == user_id).order_by(user_subjects.c.id)
        with get_db_session() as session:
            return [_user_subject(row) for row in session.execute(query)]

    def replace_user_subjects(self, user_id: str, selections: Iterable[UserSubject]) -> List[UserSubject]:
        selections = list(selections)
        # One session: the delete and the inserts commit together
        with get_db_session() as session:
            session.execute(delete(user_subjects).where(user_subjects.c.user_id == user_id))
            for selection in selections:
                values = {"user_id": user_id, "subject_id": selection.subject_id, "level": selection.level}
                if selection.created_at:
                    values["created_at"] = _utc(selection.created_at)
                session.execute(insert(user_subjects).values(**values))
        return selections

    def get_weekly_selection(self, user_id: str, subject_id: str, week_start_date_key: str) -> Optional[WeeklyUnitSelection]:
        query = select(weekly_unit_selections).where(
            and_(
                weekly_unit_selections.c.user_id == user_id,
                weekly_unit_selections.c.subject_id == subject_id,
                weekly_unit_selections.c.week_start_date_key == week_start_date_key,
            )
        )
        with get_db_session() as session:
            row = session.execute(query).first()
            return _weekly_selection(row) if row else None

    def list_weekly_selections(self, user_id: str, week_start_date_key: str) -> List[WeeklyUnitSelection]:
        query = (
            select(weekly_unit_selections)
            .where(
                and_(
                    weekly_unit_selections.c.user_id == user_id,
                    weekly_unit_selections.c.week_start_date_key == week_start_date_key,
                )
            )
            .order_by(weekly_unit_selections.c.subject_id)
        )
        with get_db_session() as session:
            return [_weekly_selection(row) for row in session.execute(query)]

    def create_weekly_selection(self, selection: WeeklyUnitSelection) -> bool:
        values = {
            "user_id": selection.user_id,
            "subject_id": selection.subject_id,
            "unit_id": selection.unit_id,
            "week_start_date_key": selection.week_start_date_key,
        }
        if selection.created_at:
            values["created_at"] = _utc(selection.created_at)
        try:
            with get_db_session() as session:
                session.execute(insert(weekly_unit_selections).values(**values))
            return True
        except IntegrityError:
            return False

    # Notifications -----------------------------------------------------
    def get_notification_prefs(self, user_id: str) -> Optional[NotificationPrefs]:
        with get_db_session() as session:
            row = session.execute(
                select(notification_prefs).where(notification_prefs.c.user_id == user_id)
            ).first()
            if row is None:
                return None
            return NotificationPrefs(
                user_id=row.user_id,
                is_enabled=bool(row.is_enabled),
                remind_minutes_before_cutoff=row.remind_minutes_before_cutoff,
                last_call_minutes_before_cutoff=row.last_call_minutes_before_cutoff,
                quiet_hours_start=row.quiet_hours_start,
                quiet_hours_end=row.quiet_hours_end,
            )

    def save_notification_prefs(self, prefs: NotificationPrefs) -> NotificationPrefs:
        values = {
            "is_enabled": prefs.is_enabled,
            "remind_minutes_before_cutoff": prefs.remind_minutes_before_cutoff,
            "last_call_minutes_before_cutoff": prefs.last_call_minutes_before_cutoff,
            "quiet_hours_start": prefs.quiet_hours_start,
            "quiet_hours_end": prefs.quiet_hours_end,
        }
        with get_db_session() as session:
            result = session.execute(
                update(notification_prefs).where(notification_prefs.c.user_id == prefs.user_id).values(**values)
            )
            if result.rowcount == 0:
                session.execute(insert(notification_prefs).values(user_id=prefs.user_id, **values))
        return prefs

    def list_reminder_logs(self, date_key: str) -> List[ReminderLogEntry]:
        query = (
            select(reminder_logs)
            .where(reminder_logs.c.date_key == date_key)
            .order_by(reminder_logs.c.user_id, reminder_logs.c.cohort_id, reminder_logs.c.type)
        )
        with get_db_session() as session:
            return [
                ReminderLogEntry(user_id=row.user_id, cohort_id=row.cohort_id, date_key=row.date_key, type=row.type)
                for row in session.execute(query)
            ]

    def try_claim_reminder(self, entry: ReminderLogEntry) -> bool:
        try:
            with get_db_session() as session:
                session.execute(
                    insert(reminder_logs).values(
                        user_id=entry.user_id,
                        cohort_id=entry.cohort_id,
                        date_key=entry.date_key,
                        type=entry.type,
                    )
                )
            return True
        except IntegrityError:
            # Unique violation: another sweep holds this claim
            return False

    def release_reminder(self, entry: ReminderLogEntry) -> None:
        with get_db_session() as session:
            session.execute(delete(reminder_logs).where(_claim_key(entry)))
