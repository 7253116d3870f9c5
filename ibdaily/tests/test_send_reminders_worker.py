import json
from unittest.mock import MagicMock, patch

import pytest

from ibdaily.workers import send_reminders


def test_worker_prints_summary(capsys, monkeypatch):
    sender = MagicMock()
    sender.is_configured = False
    monkeypatch.setattr(send_reminders, "get_email_sender", lambda: sender)

    assert send_reminders.main(["--now", "2024-03-15T19:30:00+05:30"]) == 0

    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert summary["date_key"] == "2024-03-15"
    assert summary["minutes_until_deadline"] == 90
    assert summary["sent"] == 0
    assert len(summary["run_id"]) == 32


def test_worker_passes_parsed_instant():
    with patch.object(send_reminders, "run_reminder_sweep", return_value={"sent": 0}) as sweep:
        send_reminders.main(["--now", "2024-03-15T14:00:00"])
    now = sweep.call_args.args[2]
    assert now.isoformat() == "2024-03-15T14:00:00+00:00"


def test_worker_rejects_bad_instant():
    with pytest.raises(SystemExit) as exc_info:
        send_reminders.main(["--now", "yesterday"])
    assert exc_info.value.code == 2
