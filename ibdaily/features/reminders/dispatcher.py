"""
Reminder sweep: one pass over every open cohort's members.

Meant to be triggered every few minutes (cron endpoint or worker CLI). The
reminder log claim is the only guard against double sends when sweeps
overlap: a row is claimed before delivery and released if delivery fails.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from ibdaily.core.clock import date_key, minutes_until_deadline
from ibdaily.core.logging import log_event
from ibdaily.features.reminders.email import EmailDeliveryError, EmailSender, generate_reminder_email
from ibdaily.features.reminders.scheduler import should_send_reminder
from ibdaily.features.store.base import Store
from ibdaily.models.notification import NotificationPrefs, ReminderLogEntry, ReminderType

logger = logging.getLogger("ibdaily.reminders")

OPEN_STATUSES = ("TRIAL", "ACTIVE")


def _sent_index(store: Store, day: str) -> Dict[Tuple[str, str], Set[ReminderType]]:
    index: Dict[Tuple[str, str], Set[ReminderType]] = {}
    for entry in store.list_reminder_logs(day):
        index.setdefault((entry.user_id, entry.cohort_id), set()).add(entry.type)
    return index


def run_reminder_sweep(
    store: Store,
    sender: EmailSender,
    now: Optional[datetime] = None,
    *,
    app_url: Optional[str] = None,
) -> dict:
    """
    Send due reminders and return a summary.

    Summary keys: ``date_key``, ``minutes_until_deadline``, ``candidates``,
    ``sent``, ``results`` (one dict per attempted delivery) and ``message``
    when the sweep was skipped outright.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    day = date_key(now)
    minutes_left = minutes_until_deadline(now)
    summary = {
        "date_key": day,
        "minutes_until_deadline": minutes_left,
        "candidates": 0,
        "sent": 0,
        "results": [],
    }

    if not sender.is_configured:
        summary["message"] = "Email not configured, skipping reminders"
        return summary
    if minutes_left <= 0:
        summary["message"] = "Past deadline, no reminders needed"
        return summary

    already_sent = _sent_index(store, day)
    results: List[dict] = []

    for cohort in store.list_cohorts(OPEN_STATUSES):
        submitted = {s.user_id for s in store.list_submissions(cohort.id, date_keys=[day])}
        for membership in store.list_memberships(cohort.id):
            user_id = membership.user_id
            if user_id in submitted:
                continue
            user = store.get_user(user_id)
            if user is None or not user.email:
                continue
            summary["candidates"] += 1

            prefs = store.get_notification_prefs(user_id) or NotificationPrefs(user_id=user_id)
            reminder_type = should_send_reminder(
                has_submitted_today=False,
                prefs=prefs,
                already_sent=already_sent.get((user_id, cohort.id), ()),
                now=now,
            )
            if reminder_type is None:
                continue

            entry = ReminderLogEntry(user_id=user_id, cohort_id=cohort.id, date_key=day, type=reminder_type)
            if not store.try_claim_reminder(entry):
                # Another sweep got here first
                continue

            content = generate_reminder_email(
                user_name=user.name,
                cohort_name=cohort.name,
                minutes_left=minutes_left,
                is_last_call=reminder_type == "LAST_CALL",
                app_url=app_url,
            )
            try:
                sender.send(to=user.email, content=content)
                success = True
            except EmailDeliveryError as exc:
                store.release_reminder(entry)
                success = False
                log_event(
                    "warning",
                    "reminder.send_failed",
                    user_id=user_id,
                    cohort_id=cohort.id,
                    date_key=day,
                    error_code="email_delivery_failed",
                    extra={"type": reminder_type, "error": str(exc)},
                )
            else:
                log_event(
                    "info",
                    "reminder.sent",
                    user_id=user_id,
                    cohort_id=cohort.id,
                    date_key=day,
                    event_type="reminder",
                    extra={"type": reminder_type, "provider": sender.provider},
                )

            results.append(
                {"user_id": user_id, "cohort_id": cohort.id, "type": reminder_type, "success": success}
            )

    summary["results"] = results
    summary["sent"] = sum(1 for r in results if r["success"])
    logger.info("reminder.sweep_complete", extra={"date_key": day, "event_type": "reminder_sweep", "sent": summary["sent"]})
    return summary
