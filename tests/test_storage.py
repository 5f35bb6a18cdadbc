"""
Tests for storage backends.

Google Sheets calls are mocked; no network access.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from exemption_tracker.models.audit import AuditEventBuilder, AuditEventType
from exemption_tracker.models.income import Currency, IncomeEntry, IncomeEntryCandidate
from exemption_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsIncomeStorage,
    GoogleSheetsProfileStorage,
    InMemoryAuditStorage,
    InMemoryIncomeStorage,
    InMemoryProfileStorage,
    StorageError,
)
from exemption_tracker.services.storage.google_sheets import INCOME_COLUMNS, PROFILE_COLUMNS


def make_entry(on: date, amount: str = "100") -> IncomeEntry:
    return IncomeEntry.from_candidate(IncomeEntryCandidate(
        date=on,
        description="payout",
        amount=Decimal(amount),
        currency=Currency.USD,
        exchange_rate=Decimal("34.12"),
    ))


def sheets_client(sheet: MagicMock) -> MagicMock:
    client = MagicMock()
    client.get_profiles_sheet.return_value = sheet
    client.get_income_sheet.return_value = sheet
    client.get_audit_sheet.return_value = sheet
    return client


class TestInMemoryStorage:
    """Tests for the demo-mode backend."""

    @pytest.mark.asyncio
    async def test_profile_roundtrip(self, profile):
        """Test creating and fetching a profile."""
        storage = InMemoryProfileStorage()
        assert await storage.create_profile("user-1", profile) is True
        assert await storage.fetch_profile("user-1") == profile
        assert await storage.fetch_profile("user-2") is None

    @pytest.mark.asyncio
    async def test_duplicate_profile(self, profile):
        """Test that a second profile for the same user is refused."""
        storage = InMemoryProfileStorage()
        await storage.create_profile("user-1", profile)
        with pytest.raises(DuplicateError):
            await storage.create_profile("user-1", profile)

    @pytest.mark.asyncio
    async def test_income_entries_per_user_newest_date_first(self):
        """Test that entries are listed per user by date, newest first."""
        storage = InMemoryIncomeStorage()
        january = make_entry(date(2025, 1, 15))
        march = make_entry(date(2025, 3, 1))
        await storage.add_income_entry("user-1", january)
        await storage.add_income_entry("user-1", march)
        await storage.add_income_entry("user-2", make_entry(date(2025, 2, 1)))

        assert await storage.list_income_entries("user-1") == [march, january]
        assert await storage.list_income_entries("nobody") == []

    @pytest.mark.asyncio
    async def test_audit_recent_events(self):
        """Test the audit limit and ordering."""
        storage = InMemoryAuditStorage()
        for task_id in range(5):
            await storage.append_event(AuditEventBuilder.task_completed(task_id=task_id + 1, text="t"))

        events = await storage.get_recent_events(limit=2)
        assert len(events) == 2
        assert events[0].timestamp >= events[1].timestamp


class TestGoogleSheetsProfileStorage:
    """Tests for the Sheets profile backend."""

    @pytest.mark.asyncio
    async def test_create_profile_appends_row(self, profile):
        """Test that a new profile is appended as one row."""
        sheet = MagicMock()
        sheet.get_all_values.return_value = [PROFILE_COLUMNS]
        storage = GoogleSheetsProfileStorage(sheets_client(sheet))

        assert await storage.create_profile("user-1", profile) is True

        row = sheet.append_row.call_args.args[0]
        assert row[0] == "user-1"
        assert row[4] == "12345678901"
        assert row[10] == "software_export"
        assert len(row) == len(PROFILE_COLUMNS)

    @pytest.mark.asyncio
    async def test_create_duplicate_profile(self, profile):
        """Test that an existing user id raises DuplicateError without retrying."""
        sheet = MagicMock()
        sheet.get_all_values.return_value = [PROFILE_COLUMNS, ["user-1", "2025-01-01T00:00:00"]]
        storage = GoogleSheetsProfileStorage(sheets_client(sheet))

        with pytest.raises(DuplicateError):
            await storage.create_profile("user-1", profile)

        sheet.append_row.assert_not_called()
        assert sheet.get_all_values.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_profile(self, profile):
        """Test reading a profile row back."""
        row = GoogleSheetsProfileStorage(MagicMock())._profile_to_row("user-1", profile)
        sheet = MagicMock()
        sheet.get_all_values.return_value = [PROFILE_COLUMNS, row]
        storage = GoogleSheetsProfileStorage(sheets_client(sheet))

        assert await storage.fetch_profile("user-1") == profile
        assert await storage.fetch_profile("user-2") is None

    @pytest.mark.asyncio
    async def test_fetch_profile_failure(self):
        """Test that API errors are wrapped in StorageError."""
        sheet = MagicMock()
        sheet.get_all_values.side_effect = RuntimeError("quota exceeded")
        storage = GoogleSheetsProfileStorage(sheets_client(sheet))

        with pytest.raises(StorageError, match="quota exceeded"):
            await storage.fetch_profile("user-1")


class TestGoogleSheetsIncomeStorage:
    """Tests for the Sheets income backend."""

    @pytest.mark.asyncio
    async def test_add_income_entry(self):
        """Test that the row is prefixed with the user id and keeps precision."""
        sheet = MagicMock()
        storage = GoogleSheetsIncomeStorage(sheets_client(sheet))
        entry = make_entry(date(2025, 1, 15), amount="500")

        await storage.add_income_entry("user-1", entry)

        row = sheet.append_row.call_args.args[0]
        assert row[0] == "user-1"
        assert row[1:] == entry.to_sheets_row()
        assert len(row) == len(INCOME_COLUMNS)

    @pytest.mark.asyncio
    async def test_list_income_entries(self):
        """Test filtering by user, skipping bad rows and sorting."""
        january = make_entry(date(2025, 1, 15))
        march = make_entry(date(2025, 3, 1))
        sheet = MagicMock()
        sheet.get_all_values.return_value = [
            INCOME_COLUMNS,
            ["user-1"] + january.to_sheets_row(),
            ["user-2"] + make_entry(date(2025, 2, 1)).to_sheets_row(),
            ["user-1", "not-a-uuid"],
            ["user-1"] + march.to_sheets_row(),
        ]
        storage = GoogleSheetsIncomeStorage(sheets_client(sheet))

        entries = await storage.list_income_entries("user-1")

        assert [e.id for e in entries] == [march.id, january.id]
        assert entries[1].domestic_value == january.domestic_value


class TestGoogleSheetsAuditStorage:
    """Tests for the Sheets audit backend."""

    @pytest.mark.asyncio
    async def test_events_roundtrip(self):
        """Test that appended rows parse back into events."""
        event = AuditEventBuilder.rates_fetched(source="tcmb", currencies=["USD", "EUR"])
        sheet = MagicMock()
        storage = GoogleSheetsAuditStorage(sheets_client(sheet))

        await storage.append_event(event)
        row = sheet.append_row.call_args.args[0]
        sheet.get_all_values.return_value = [[], row]

        (loaded,) = await storage.get_recent_events()
        assert loaded.event_id == event.event_id
        assert loaded.event_type == AuditEventType.RATES_FETCHED
        assert loaded.details == {"source": "tcmb", "currencies": ["USD", "EUR"]}

    @pytest.mark.asyncio
    async def test_append_failure(self):
        """Test that write errors are wrapped in StorageError."""
        sheet = MagicMock()
        sheet.append_row.side_effect = RuntimeError("offline")
        storage = GoogleSheetsAuditStorage(sheets_client(sheet))

        with pytest.raises(StorageError):
            await storage.append_event(AuditEventBuilder.profile_created(user_id="user-1"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
