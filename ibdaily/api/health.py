"""Liveness and readiness endpoints."""

import logging
import os

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ibdaily.core.database import check_connection
from ibdaily.core.logging import get_request_id
from ibdaily.features.store.memory import get_store

logger = logging.getLogger("ibdaily")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness: which store is serving and whether its database answers."""
    store = get_store()
    backend = type(store).__name__
    if not os.getenv("DATABASE_URL"):
        return {"status": "ok", "store": backend, "db": None}

    connected = check_connection()
    if not connected:
        logger.warning("readyz.db_unavailable", extra={"request_id": get_request_id()})
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "store": backend, "db": {"connected": False}},
        )
    return {"status": "ok", "store": backend, "db": {"connected": True}}
