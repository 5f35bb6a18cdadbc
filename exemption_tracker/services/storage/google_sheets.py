"""
Google Sheets Storage

DESIGN DECISION: Google Sheets is the hosted store because:
1. Users can view their income records directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for one person's income log)
- No transactions (entries are append-only, so ordering is enough)
- No server-side filtering; rows are filtered by user id in Python
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from exemption_tracker.config import GoogleSheetsSettings, get_settings
from exemption_tracker.models.income import (
    CompanyStatus,
    Currency,
    IncomeEntry,
    IncomeSource,
    UserProfile,
)
from exemption_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from exemption_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IncomeStorageInterface,
    ProfileStorageInterface,
    StorageError,
)


PROFILE_COLUMNS = [
    "user_id",
    "created_at",
    "first_name",
    "last_name",
    "national_id",
    "tax_office",
    "address",
    "tax_id",
    "phone",
    "email",
    "income_source",
    "company_status",
]

INCOME_COLUMNS = [
    "user_id",
    "id",
    "created_at",
    "date",
    "description",
    "amount",
    "currency",
    "exchange_rate",
    "domestic_value",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_getter(row: list):
    """Index into a sheet row, treating missing and blank cells alike."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Connection to the spreadsheet holding every worksheet.

    Shared by the profile, income and audit stores.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Authorize against the Sheets API once and reuse the client.

        Authenticates with a service account JSON key.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """The spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # First run: add the worksheet and its header row
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_profiles_sheet(self) -> gspread.Worksheet:
        """Get or create the Profiles worksheet."""
        return self._get_or_create_sheet(
            self._settings.profiles_sheet_name, PROFILE_COLUMNS, rows=500
        )

    def get_income_sheet(self) -> gspread.Worksheet:
        """Get or create the IncomeEntries worksheet."""
        return self._get_or_create_sheet(
            self._settings.income_sheet_name, INCOME_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Audit worksheet, created with headers on first use."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsProfileStorage(ProfileStorageInterface):
    """
    Google Sheets implementation of profile storage.

    One profile per row, keyed by user id in the first column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _profile_to_row(self, user_id: str, profile: UserProfile) -> list:
        return [
            user_id,
            datetime.utcnow().isoformat(),
            profile.first_name,
            profile.last_name,
            profile.national_id,
            profile.tax_office,
            profile.address,
            profile.tax_id,
            profile.phone,
            profile.email,
            profile.income_source.value,
            profile.company_status.value,
        ]

    def _row_to_profile(self, row: list) -> UserProfile:
        safe_get = _safe_getter(row)
        return UserProfile(
            first_name=safe_get(2),
            last_name=safe_get(3),
            national_id=safe_get(4),
            tax_office=safe_get(5),
            address=safe_get(6),
            tax_id=safe_get(7),
            phone=safe_get(8),
            email=safe_get(9),
            income_source=IncomeSource(safe_get(10, IncomeSource.DIGITAL_PLATFORMS.value)),
            company_status=CompanyStatus(safe_get(11, CompanyStatus.NONE.value)),
        )

    def _find_row(self, user_id: str) -> Optional[list]:
        sheet = self._client.get_profiles_sheet()
        for row in sheet.get_all_values()[1:]:
            if row and row[0] == user_id:
                return row
        return None

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create_profile(self, user_id: str, profile: UserProfile) -> bool:
        """Save a new profile to Google Sheets."""
        try:
            if self._find_row(user_id) is not None:
                raise DuplicateError(f"Profile already exists: {user_id}")
            sheet = self._client.get_profiles_sheet()
            sheet.append_row(
                self._profile_to_row(user_id, profile),
                value_input_option="RAW",
            )
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save profile: {e}")

    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        """Retrieve a profile by user id."""
        try:
            row = self._find_row(user_id)
            return self._row_to_profile(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")


class GoogleSheetsIncomeStorage(IncomeStorageInterface):
    """
    Google Sheets implementation of income storage.

    Entries are appended as rows prefixed with the owning user id.
    Amounts are written as strings so Decimal precision survives the round trip.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_entry(self, row: list) -> IncomeEntry:
        safe_get = _safe_getter(row)
        return IncomeEntry(
            id=UUID(safe_get(1)),
            created_at=datetime.fromisoformat(safe_get(2)),
            date=date.fromisoformat(safe_get(3)),
            description=safe_get(4),
            amount=Decimal(safe_get(5)),
            currency=Currency(safe_get(6)),
            exchange_rate=Decimal(safe_get(7)),
            domestic_value=Decimal(safe_get(8)),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def add_income_entry(self, user_id: str, entry: IncomeEntry) -> bool:
        """Append an income entry."""
        try:
            sheet = self._client.get_income_sheet()
            sheet.append_row([user_id] + entry.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save income entry: {e}")

    async def list_income_entries(self, user_id: str) -> list[IncomeEntry]:
        """List a user's entries, newest date first."""
        try:
            sheet = self._client.get_income_sheet()
            all_rows = sheet.get_all_values()[1:]

            entries = []
            for row in all_rows:
                if not row or row[0] != user_id:
                    continue
                try:
                    entries.append(self._row_to_entry(row))
                except Exception:
                    continue  # malformed

            entries.sort(key=lambda e: e.date, reverse=True)
            return entries
        except Exception as e:
            raise StorageError(f"Failed to list income entries: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit events as rows of the Audit worksheet.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            user_id=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = []
            for row in all_rows:
                if row and row[0]:
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
