"""Subject catalogue, a student's subject choices and the weekly unit focus."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ibdaily.api.deps import resolve_now
from ibdaily.features.subjects.service import SubjectService
from ibdaily.models.subject import SubjectSelection

router = APIRouter()


class SaveUserSubjectsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    selections: List[SubjectSelection]


class SelectWeeklyUnitRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    subject_id: str = Field(..., min_length=1)
    unit_id: str = Field(..., min_length=1)


@router.get("/v1/subjects")
def list_subjects():
    return SubjectService().catalogue()


@router.get("/v1/units")
def list_units(
    user_id: str = Query(..., min_length=1),
    subject_id: str = Query(..., min_length=1),
):
    return SubjectService().units(user_id=user_id, subject_id=subject_id)


@router.get("/v1/user-subjects")
def get_user_subjects(user_id: str = Query(..., min_length=1)):
    return SubjectService().user_subjects(user_id=user_id)


@router.post("/v1/user-subjects")
def save_user_subjects(body: SaveUserSubjectsRequest, now: datetime = Depends(resolve_now)):
    return SubjectService().save_user_subjects(user_id=body.user_id, selections=body.selections, now=now)


@router.get("/v1/weekly-unit")
def get_weekly_unit(
    user_id: str = Query(..., min_length=1),
    subject_id: Optional[str] = Query(None, min_length=1),
    now: datetime = Depends(resolve_now),
):
    service = SubjectService()
    if subject_id:
        return service.weekly_unit(user_id=user_id, subject_id=subject_id, now=now)
    return service.weekly_units(user_id=user_id, now=now)


@router.post("/v1/weekly-unit")
def select_weekly_unit(body: SelectWeeklyUnitRequest, now: datetime = Depends(resolve_now)):
    return SubjectService().select_weekly_unit(
        user_id=body.user_id,
        subject_id=body.subject_id,
        unit_id=body.unit_id,
        now=now,
    )
