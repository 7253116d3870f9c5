"""
Reminder sweep worker.

Run from cron every few minutes; overlapping runs are safe because each
reminder is claimed in the log before it is sent.
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from ibdaily.core.config import settings
from ibdaily.core.logging import configure_logging, request_context
from ibdaily.features.reminders.dispatcher import run_reminder_sweep
from ibdaily.features.reminders.email import get_email_sender
from ibdaily.features.store.memory import get_store

logger = logging.getLogger("ibdaily.workers")


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def run_once(now: Optional[datetime] = None) -> dict:
    return run_reminder_sweep(get_store(), get_email_sender(), now)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send due study reminders for every open cohort.")
    parser.add_argument("--now", dest="now", help="Override the current instant (ISO 8601, naive means UTC).")
    args = parser.parse_args(argv)

    configure_logging(settings.ENV)
    try:
        now = _parse_now(args.now)
    except ValueError:
        parser.error(f"invalid --now value: {args.now!r}")

    with request_context() as run_id:
        summary = run_once(now)
        logger.info("reminder worker finished", extra={"date_key": summary.get("date_key"), "sent": summary["sent"]})
    summary["run_id"] = run_id
    print(json.dumps(summary, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
