# ibdaily/conftest.py
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch):
    """
    Give every test its own in-memory store.

    DATABASE_URL is cleared so get_store() never reaches for a real database.
    """
    from ibdaily.features.store.memory import InMemoryStore, reset_store, set_store

    monkeypatch.delenv("DATABASE_URL", raising=False)
    set_store(InMemoryStore())
    yield
    reset_store()


@pytest.fixture
def store():
    from ibdaily.features.store.memory import get_store

    return get_store()


@pytest.fixture
def ist():
    """Build an aware instant from an IST wall-clock reading."""

    def _at(day: str, hour: int, minute: int = 0, second: int = 0) -> datetime:
        return datetime.fromisoformat(f"{day}T{hour:02d}:{minute:02d}:{second:02d}+05:30")

    return _at
