"""
Logging for the ibdaily backend.

Every record under the ``ibdaily`` logger carries the id of the HTTP request
or worker run that produced it, plus the cohort context the call site knows:
user, cohort, DayKey, event type and error code. Production renders one JSON
object per line; everything else renders a compact text line.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional
from uuid import uuid4

LOGGER_NAME = "ibdaily"

# First-class fields, rendered by both formatters in this order
CONTEXT_FIELDS = ("request_id", "user_id", "cohort_id", "date_key", "event_type", "error_code")

MAX_EXTRA_LENGTH = 500

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


@contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the duration of a request or worker run."""
    rid = request_id or uuid4().hex
    token = request_id_ctx_var.set(rid)
    try:
        yield rid
    finally:
        request_id_ctx_var.reset(token)


class RequestIdFilter(logging.Filter):
    """Fill in the bound request id and give every context field a value."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_ctx_var.get()
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, None)
        return True


def _timestamp(record: logging.LogRecord) -> str:
    stamp = datetime.fromtimestamp(record.created, timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    """``<ts> LEVEL <logger> [rid=.. cohort=.. user=.. day=..] message``"""

    _LABELS = (("request_id", "rid"), ("cohort_id", "cohort"), ("user_id", "user"), ("date_key", "day"))

    def format(self, record: logging.LogRecord) -> str:
        tags = " ".join(
            f"{label}={getattr(record, field)}"
            for field, label in self._LABELS
            if getattr(record, field, None) is not None
        )
        line = f"{_timestamp(record)} {record.levelname} {record.name}"
        if tags:
            line += f" [{tags}]"
        line += f" {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development") -> None:
    """Install one stdout handler on the ``ibdaily`` logger (safe to call repeatedly)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())
    logger.handlers = [handler]
    logger.propagate = True


def _clip(value) -> str:
    text = value if isinstance(value, str) else repr(value)
    if len(text) <= MAX_EXTRA_LENGTH:
        return text
    return f"{text[:MAX_EXTRA_LENGTH]}...[{len(text) - MAX_EXTRA_LENGTH} chars truncated]"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    cohort_id: Optional[str] = None,
    date_key: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """
    Emit one domain event on the ``ibdaily`` logger.

    Context fields are attached as-is. Free-form ``extra`` values are clipped
    to ``MAX_EXTRA_LENGTH`` characters (user-written bullets and provider
    error bodies can be long), and keys that collide with ``LogRecord``
    attributes are prefixed with ``extra_``.
    """
    fields = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "cohort_id": cohort_id,
        "date_key": date_key,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        name = f"extra_{key}" if key in _RESERVED or key in fields else key
        fields[name] = _clip(value)

    levelno = logging.getLevelName(level.upper())
    if not isinstance(levelno, int):
        levelno = logging.INFO
    logging.getLogger(LOGGER_NAME).log(levelno, msg, extra=fields)
