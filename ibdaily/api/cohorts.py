from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ibdaily.api.deps import resolve_now
from ibdaily.features.cohort_health.service import CohortHealthService
from ibdaily.features.cohorts.service import CohortService
from ibdaily.features.cohorts.status import format_days_remaining, get_activation_counter_text
from ibdaily.models.cohort import Cohort

router = APIRouter()


class CreateCohortRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)


class JoinCohortRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    join_code: str = Field(..., min_length=1, max_length=16)


def _cohort_payload(cohort: Cohort) -> dict:
    return {
        "id": cohort.id,
        "name": cohort.name,
        "join_code": cohort.join_code,
        "status": cohort.status,
        "trial_ends_at": cohort.trial_ends_at,
        "activated_at": cohort.activated_at,
    }


@router.post("/v1/cohorts")
def create_cohort(body: CreateCohortRequest, now: datetime = Depends(resolve_now)):
    cohort = CohortService().create_cohort(owner_id=body.user_id, name=body.name, now=now)
    return {"cohort": _cohort_payload(cohort)}


@router.post("/v1/cohorts/join")
def join_cohort(body: JoinCohortRequest, now: datetime = Depends(resolve_now)):
    result = CohortService().join_cohort(user_id=body.user_id, join_code=body.join_code, now=now)
    return {"cohort": _cohort_payload(result["cohort"]), "already_member": result["already_member"]}


@router.get("/v1/cohorts/{cohort_id}/status")
def get_cohort_status(
    cohort_id: str,
    user_id: str = Query(..., min_length=1),
    now: datetime = Depends(resolve_now),
):
    service = CohortService()
    service.get_cohort(cohort_id)
    service.require_membership(user_id, cohort_id)
    info = service.refresh_status(cohort_id, now)
    payload = info.model_dump()
    payload["days_remaining_text"] = format_days_remaining(info.days_until_trial_end) if info.status == "TRIAL" else None
    payload["activation_counter_text"] = get_activation_counter_text(info.paid_count)
    return payload


@router.get("/v1/cohorts/{cohort_id}/health")
def get_cohort_health(
    cohort_id: str,
    user_id: str = Query(..., min_length=1),
    now: datetime = Depends(resolve_now),
):
    """Owner-only engagement metrics."""
    return CohortHealthService().health(user_id=user_id, cohort_id=cohort_id, now=now)
