from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Query

from ibdaily.core.clock import utc_now
from ibdaily.core.config import settings
from ibdaily.core.logging import log_event


CLOCK_OVERRIDE_ENVS = ("development", "test")


def clock_override_allowed() -> bool:
    return settings.ENV.lower() in CLOCK_OVERRIDE_ENVS


def resolve_now(now: Optional[datetime] = Query(None, description="Override the current instant (ISO 8601, development/test only)")) -> datetime:
    """
    Request instant.

    Writes are stamped with this value, so the ``now`` override is honoured
    only in development and test environments. Elsewhere the server clock wins.
    """
    if now is None:
        return utc_now()
    if not clock_override_allowed():
        log_event("warning", "clock_override.ignored", error_code="clock_override_forbidden", extra={"env": settings.ENV})
        return utc_now()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)
