"""
In-Memory Storage Implementation

Used in demo mode (no storage credentials configured) and in tests.
Nothing survives a restart.
"""

from typing import Optional

from exemption_tracker.models.income import IncomeEntry, UserProfile
from exemption_tracker.models.audit import AuditEvent
from exemption_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    IncomeStorageInterface,
    ProfileStorageInterface,
)


class InMemoryProfileStorage(ProfileStorageInterface):
    """Profiles keyed by user id."""

    def __init__(self):
        self._profiles: dict[str, UserProfile] = {}

    async def create_profile(self, user_id: str, profile: UserProfile) -> bool:
        if user_id in self._profiles:
            raise DuplicateError(f"Profile already exists: {user_id}")
        self._profiles[user_id] = profile
        return True

    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)


class InMemoryIncomeStorage(IncomeStorageInterface):
    """Income entries keyed by user id."""

    def __init__(self):
        self._entries: dict[str, list[IncomeEntry]] = {}

    async def add_income_entry(self, user_id: str, entry: IncomeEntry) -> bool:
        self._entries.setdefault(user_id, []).append(entry)
        return True

    async def list_income_entries(self, user_id: str) -> list[IncomeEntry]:
        entries = list(self._entries.get(user_id, []))
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
