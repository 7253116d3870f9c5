from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class User:
    """Minimal user profile needed for display names and reminder emails."""

    id: str
    email: str = ""
    name: Optional[str] = None
    onboarding_completed: bool = False
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


@dataclass
class Subscription:
    """Payment-provider subscription state, mirrored per user."""

    user_id: str
    status: str  # active, past_due, canceled, ...
    current_period_end: datetime
