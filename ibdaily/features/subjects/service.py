"""
Subject choices and weekly unit focus.

Students pick 3-6 IB subjects, each at SL or HL. Subjects with a unit list
also get one focus unit per week; weeks are keyed by their Monday DayKey and
a pick cannot be changed until the next week starts. When nothing is picked
yet, last week's unit is offered as a suggestion but not committed.
"""
from __future__ import annotations

from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from ibdaily.core.clock import add_days, week_end, week_start
from ibdaily.core.errors import NotFoundError, ValidationError
from ibdaily.core.logging import log_event
from ibdaily.features.store.base import Store
from ibdaily.features.store.memory import get_store
from ibdaily.models.subject import (
    SubjectSelection,
    SuggestedUnit,
    Unit,
    UserSubject,
    WeeklyUnitSelection,
)
from ibdaily.models.user import User

MIN_SUBJECTS = 3
MAX_SUBJECTS = 6
LEVELS = ("SL", "HL")


def units_for_level(units: Iterable[Unit], level: str) -> List[Unit]:
    own_scope = "HL_ONLY" if level == "HL" else "SL_ONLY"
    return [u for u in units if u.level_scope in ("BOTH", own_scope)]


def previous_week_start(week_key: str) -> str:
    return add_days(week_key, -7)


class SubjectService:
    def __init__(self, store: Optional[Store] = None):
        self.store = store or get_store()

    # Catalogue ---------------------------------------------------------
    def catalogue(self) -> dict:
        """All subjects in group order, plus the same list grouped by IB group name."""
        subjects = []
        grouped: Dict[str, List[dict]] = {}
        for subject in self.store.list_subjects():
            entry = asdict(subject)
            entry["unit_count"] = len(self.store.list_units(subject.id))
            subjects.append(entry)
            grouped.setdefault(subject.group_name, []).append(entry)
        return {"subjects": subjects, "grouped": grouped}

    def _require_user_subject(self, user_id: str, subject_id: str) -> UserSubject:
        for user_subject in self.store.list_user_subjects(user_id):
            if user_subject.subject_id == subject_id:
                return user_subject
        raise ValidationError("You don't have this subject selected")

    def units(self, *, user_id: str, subject_id: str) -> dict:
        """Units of one of the user's subjects, filtered to the level they take it at."""
        user_subject = self._require_user_subject(user_id, subject_id)
        units = units_for_level(self.store.list_units(subject_id), user_subject.level)
        return {"units": [asdict(u) for u in units], "level": user_subject.level}

    def subject_label(self, user_id: str, subject_id: str) -> str:
        """Transcript-style label such as ``"Physics HL"``."""
        user_subject = self._require_user_subject(user_id, subject_id)
        subject = self.store.get_subject(subject_id)
        name = subject.transcript_name if subject else "Unknown"
        return f"{name} {user_subject.level}"

    # User subjects -----------------------------------------------------
    def user_subjects(self, *, user_id: str) -> dict:
        entries = []
        for user_subject in self.store.list_user_subjects(user_id):
            subject = self.store.get_subject(user_subject.subject_id)
            if subject is None:
                continue
            units = units_for_level(self.store.list_units(subject.id), user_subject.level)
            entries.append(
                {
                    "subject_id": subject.id,
                    "level": user_subject.level,
                    "label": f"{subject.transcript_name} {user_subject.level}",
                    "subject": asdict(subject),
                    "units": [asdict(u) for u in units],
                }
            )
        entries.sort(key=lambda e: (e["subject"]["group_number"], e["subject"]["full_name"]))

        user = self.store.get_user(user_id)
        return {
            "user_subjects": entries,
            "onboarding_completed": bool(user and user.onboarding_completed),
            "min_subjects": MIN_SUBJECTS,
            "max_subjects": MAX_SUBJECTS,
        }

    def save_user_subjects(
        self,
        *,
        user_id: str,
        selections: Sequence[SubjectSelection],
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Replace the user's subject set and mark onboarding complete.

        Raises:
            ValidationError: Wrong count, bad level, duplicates, or level not offered
            NotFoundError: Unknown subject id
        """
        if now is None:
            now = datetime.now(timezone.utc)
        if len(selections) < MIN_SUBJECTS:
            raise ValidationError(f"You must select at least {MIN_SUBJECTS} subjects")
        if len(selections) > MAX_SUBJECTS:
            raise ValidationError(f"You can select at most {MAX_SUBJECTS} subjects")
        for selection in selections:
            if selection.level not in LEVELS:
                raise ValidationError("Level must be SL or HL")

        subject_ids = [s.subject_id for s in selections]
        if len(set(subject_ids)) != len(subject_ids):
            raise ValidationError("Duplicate subjects not allowed")

        for selection in selections:
            subject = self.store.get_subject(selection.subject_id)
            if subject is None:
                raise NotFoundError(f"Subject {selection.subject_id} not found")
            if selection.level == "HL" and not subject.hl_available:
                raise ValidationError(f"{subject.full_name} is not available at HL")
            if selection.level == "SL" and not subject.sl_available:
                raise ValidationError(f"{subject.full_name} is not available at SL")

        self.store.replace_user_subjects(
            user_id,
            [UserSubject(user_id=user_id, subject_id=s.subject_id, level=s.level, created_at=now) for s in selections],
        )
        user = self.store.get_user(user_id) or User(id=user_id, created_at=now)
        self.store.save_user(replace(user, onboarding_completed=True))

        log_event("info", "subjects.saved", user_id=user_id, extra={"subjects": ",".join(subject_ids)})
        return {"saved": True}

    # Weekly unit focus -------------------------------------------------
    def _selection_view(self, selection: WeeklyUnitSelection) -> dict:
        subject = self.store.get_subject(selection.subject_id)
        unit = next((u for u in self.store.list_units(selection.subject_id) if u.id == selection.unit_id), None)
        return {
            "subject_id": selection.subject_id,
            "subject_name": subject.transcript_name if subject else None,
            "unit_id": selection.unit_id,
            "unit_name": unit.name if unit else None,
            "week_start_date_key": selection.week_start_date_key,
        }

    def _suggestion(self, selection: WeeklyUnitSelection) -> SuggestedUnit:
        view = self._selection_view(selection)
        return SuggestedUnit(
            subject_id=view["subject_id"],
            subject_name=view["subject_name"] or "Unknown",
            unit_id=view["unit_id"],
            unit_name=view["unit_name"] or "Unknown",
        )

    def weekly_unit(self, *, user_id: str, subject_id: str, now: Optional[datetime] = None) -> dict:
        """This week's pick for one subject, or last week's as a suggestion."""
        if now is None:
            now = datetime.now(timezone.utc)
        week = week_start(now)
        selection = self.store.get_weekly_selection(user_id, subject_id, week)
        if selection is None:
            last_week = self.store.get_weekly_selection(user_id, subject_id, previous_week_start(week))
            if last_week is not None:
                return {
                    "selection": None,
                    "suggested_unit": self._suggestion(last_week),
                    "week_start_date_key": week,
                    "week_end_date_key": week_end(week),
                    "carried_forward": True,
                }
        return {
            "selection": self._selection_view(selection) if selection else None,
            "week_start_date_key": week,
            "week_end_date_key": week_end(week),
            "carried_forward": False,
        }

    def weekly_units(self, *, user_id: str, now: Optional[datetime] = None) -> dict:
        """All picks for this week, plus suggestions for unit subjects still unpicked."""
        if now is None:
            now = datetime.now(timezone.utc)
        week = week_start(now)
        selections = self.store.list_weekly_selections(user_id, week)
        picked = {s.subject_id for s in selections}

        suggestions = []
        previous = previous_week_start(week)
        for user_subject in self.store.list_user_subjects(user_id):
            subject = self.store.get_subject(user_subject.subject_id)
            if subject is None or not subject.has_units or subject.id in picked:
                continue
            last_week = self.store.get_weekly_selection(user_id, subject.id, previous)
            if last_week is not None:
                suggestions.append(self._suggestion(last_week))

        return {
            "selections": [self._selection_view(s) for s in selections],
            "suggested_units": suggestions,
            "week_start_date_key": week,
            "week_end_date_key": week_end(week),
        }

    def select_weekly_unit(
        self,
        *,
        user_id: str,
        subject_id: str,
        unit_id: str,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Commit this week's unit for a subject. Once set it holds until Monday.

        Raises:
            ValidationError: Subject not taken, unit not offered at the user's
                level, or a unit already chosen this week
        """
        if now is None:
            now = datetime.now(timezone.utc)
        user_subject = self._require_user_subject(user_id, subject_id)
        offered = units_for_level(self.store.list_units(subject_id), user_subject.level)
        if not any(u.id == unit_id for u in offered):
            raise ValidationError("Invalid unit for this subject/level")

        week = week_start(now)
        selection = WeeklyUnitSelection(
            user_id=user_id,
            subject_id=subject_id,
            unit_id=unit_id,
            week_start_date_key=week,
            created_at=now,
        )
        if not self.store.create_weekly_selection(selection):
            existing = self.store.get_weekly_selection(user_id, subject_id, week)
            name = self._selection_view(existing)["unit_name"] if existing else "a unit"
            raise ValidationError(f'You already selected "{name}" for this week. You can change it next week.')

        log_event(
            "info",
            "weekly_unit.selected",
            user_id=user_id,
            extra={"subject_id": subject_id, "unit_id": unit_id, "week_start_date_key": week},
        )
        return {"saved": True, "week_start_date_key": week}
