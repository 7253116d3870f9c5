"""Reminder cron trigger and notification preferences."""
from __future__ import annotations

import hmac
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field

from ibdaily.api.deps import resolve_now
from ibdaily.core.config import settings
from ibdaily.core.errors import UnauthorizedError
from ibdaily.features.reminders.dispatcher import run_reminder_sweep
from ibdaily.features.reminders.email import get_email_sender
from ibdaily.features.reminders.preferences import get_notification_prefs, update_notification_prefs
from ibdaily.features.store.memory import get_store

router = APIRouter()


class NotificationPrefsUpdate(BaseModel):
    user_id: str = Field(..., min_length=1)
    is_enabled: Optional[bool] = None
    remind_minutes_before_cutoff: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    last_call_minutes_before_cutoff: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    quiet_hours_start: Optional[int] = Field(default=None, ge=0, le=23)
    quiet_hours_end: Optional[int] = Field(default=None, ge=0, le=23)


def verify_cron_secret(authorization: Optional[str]) -> bool:
    """Bearer CRON_SECRET; with no secret configured only development may trigger."""
    secret = settings.CRON_SECRET
    if not secret:
        return settings.ENV.lower() == "development"
    if not authorization:
        return False
    scheme, _, token = authorization.partition(" ")
    return scheme == "Bearer" and hmac.compare_digest(token, secret)


@router.post("/v1/cron/send-reminders")
def send_reminders(
    authorization: Optional[str] = Header(None),
    now: datetime = Depends(resolve_now),
):
    if not verify_cron_secret(authorization):
        raise UnauthorizedError("Unauthorized")
    summary = run_reminder_sweep(get_store(), get_email_sender(), now)
    return {"success": True, **summary}


@router.get("/v1/notification-prefs")
def read_notification_prefs(user_id: str = Query(..., min_length=1)):
    return get_notification_prefs(get_store(), user_id)


@router.put("/v1/notification-prefs")
def write_notification_prefs(body: NotificationPrefsUpdate):
    changes = body.model_dump(exclude_unset=True)
    user_id = changes.pop("user_id")
    return update_notification_prefs(get_store(), user_id, **changes)
