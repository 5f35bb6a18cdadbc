"""
Abstract Storage Interface

Flows depend on these interfaces, never on a concrete backend.
This allows us to:
1. Replace Google Sheets without touching the flows
2. Use in-memory storage for testing and demo mode
3. Keep the ledger decoupled from storage implementation

The ledger itself never calls storage. Flows load entries from here,
seed the ledger, and persist whatever the ledger accepted.
"""

from abc import ABC, abstractmethod
from typing import Optional

from exemption_tracker.models.income import IncomeEntry, UserProfile
from exemption_tracker.models.audit import AuditEvent


class ProfileStorageInterface(ABC):
    """
    Abstract interface for user profile storage.

    Every backend (Google Sheets, in-memory)
    must implement these methods.
    """

    @abstractmethod
    async def create_profile(self, user_id: str, profile: UserProfile) -> bool:
        """
        Store a new profile for a user.

        Returns:
            True if saved successfully

        Raises:
            DuplicateError: If the user already has a profile
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        """
        Retrieve a user's profile.

        Returns:
            The profile if found, None otherwise
        """
        pass


class IncomeStorageInterface(ABC):
    """Abstract interface for income entry storage."""

    @abstractmethod
    async def add_income_entry(self, user_id: str, entry: IncomeEntry) -> bool:
        """
        Append an income entry for a user.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_income_entries(self, user_id: str) -> list[IncomeEntry]:
        """
        List a user's income entries.

        Returns:
            Entries ordered by date, newest first
        """
        pass


class AuditStorageInterface(ABC):
    """
    Where audit events are kept.

    There is no update or delete operation.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Persist one event.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Most recent events first.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """A storage backend call failed."""
    pass


class NotFoundError(StorageError):
    """No record for the requested key."""
    pass


class DuplicateError(StorageError):
    """The record already exists (one profile per user)."""
    pass


class ConnectionError(StorageError):
    """The backend could not be reached or authorized."""
    pass
