"""
Main Orchestrator for the Exemption Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Income tracking (validate → ledger → persist → audit → notify)
2. Registration (signup wizard → profile storage)

DESIGN DECISION: The ledger never depends on collaborator success.
An entry the ledger accepted stays in the ledger even if persisting it
fails; the failure is surfaced as a notification and an audit event.
"""

import asyncio
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import BaseModel

from exemption_tracker.audit import AuditLogger
from exemption_tracker.config import get_settings
from exemption_tracker.export import (
    ExportError,
    ExportSummary,
    export_filename,
    format_entries,
)
from exemption_tracker.ledger import ExemptionLedger, InvalidEntry
from exemption_tracker.models.income import (
    DOMESTIC_CURRENCY,
    ComplianceTask,
    Currency,
    ExportKind,
    IncomeEntry,
    IncomeEntryCandidate,
    NotificationSeverity,
    RateTable,
    ThresholdState,
    UserProfile,
    ValidationResult,
)
from exemption_tracker.notifications import NotificationCenter
from exemption_tracker.onboarding import SignupWizard
from exemption_tracker.services.rates import (
    RateFetchError,
    RateSourceInterface,
    get_rate_source,
    resolve_rate,
)
from exemption_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIncomeStorage,
    GoogleSheetsProfileStorage,
    IncomeStorageInterface,
    InMemoryAuditStorage,
    InMemoryIncomeStorage,
    ProfileStorageInterface,
    StorageError,
)
from exemption_tracker.tasks import ComplianceTaskList
from exemption_tracker.validation import IncomeEntryValidator


logger = structlog.get_logger()


def demo_entries() -> list[IncomeEntry]:
    """Sample history shown when no storage is configured, oldest first."""
    return [
        IncomeEntry.from_candidate(IncomeEntryCandidate(
            date=date(2025, 1, 15),
            description="Stripe payment",
            amount=Decimal("500"),
            currency=Currency.USD,
            exchange_rate=Decimal("34.12"),
        )),
        IncomeEntry.from_candidate(IncomeEntryCandidate(
            date=date(2025, 2, 1),
            description="PayPal client payment",
            amount=Decimal("300"),
            currency=Currency.EUR,
            exchange_rate=Decimal("37.05"),
        )),
    ]


class IncomeTrackingFlow:
    """
    Orchestrates the income dashboard.

    Flow for a new entry:
    1. Validate → Two-stage validation (blocking errors, warnings)
    2. Record → Ledger computes the domestic value and threshold state
    3. Persist → Income storage (failure does not undo step 2)
    4. Audit → Entry and threshold events
    5. Notify → Success message to the user
    """

    ADDED_TITLE = "Income added"
    SAVE_FAILED_TITLE = "Could not save entry"
    LOAD_FAILED_TITLE = "Could not load income history"
    RATES_FAILED_TITLE = "Exchange rates unavailable"
    EXPORT_FAILED_TITLE = "Export failed"

    def __init__(
        self,
        income_storage: Optional[IncomeStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifications: Optional[NotificationCenter] = None,
        rate_source: Optional[RateSourceInterface] = None,
        validator: Optional[IncomeEntryValidator] = None,
        seed_entries: Iterable[IncomeEntry] = (),
    ):
        settings = get_settings()
        self._exemption_settings = settings.exemption
        self._rate_side = settings.rates.rate_side

        self._income_storage = income_storage
        self._audit_logger = audit_logger or AuditLogger()
        self.notifications = notifications or NotificationCenter()
        self._rate_source = rate_source or get_rate_source(settings.rates.provider)
        self._validator = validator or IncomeEntryValidator(rate_side=self._rate_side)
        self._seed_entries = list(seed_entries)
        self._rates: Optional[RateTable] = None

        self.tasks = ComplianceTaskList(sink=self.notifications)
        self.ledger = self._new_ledger(self._seed_entries)

    def _new_ledger(self, entries: Iterable[IncomeEntry]) -> ExemptionLedger:
        return ExemptionLedger.from_settings(
            self._exemption_settings,
            sink=self.notifications,
            entries=entries,
        )

    @property
    def rates(self) -> Optional[RateTable]:
        """The last successfully fetched rate table."""
        return self._rates

    async def load(self, user_id: str) -> ExemptionLedger:
        """
        Rebuild the ledger from stored entries.

        Seeding never raises threshold notifications. A storage failure
        leaves the ledger with the seed entries only.
        """
        self._audit_logger.bind_user(user_id)
        stored: list[IncomeEntry] = []

        if self._income_storage is not None:
            try:
                stored = await self._income_storage.list_income_entries(user_id)
            except StorageError as e:
                logger.error("income_load_failed", user_id=user_id, error=str(e))
                await self._audit_logger.log_error(
                    error_type="income_load_failed",
                    error_message=str(e),
                )
                self.notifications.notify(
                    self.LOAD_FAILED_TITLE,
                    "Your previous entries could not be loaded. Please try again later.",
                    NotificationSeverity.WARNING,
                )

        entries = sorted(
            self._seed_entries + stored,
            key=lambda e: (e.created_at, e.date),
        )
        self.ledger = self._new_ledger(entries)
        logger.info("ledger_loaded", user_id=user_id, entry_count=len(entries))
        return self.ledger

    def validate(self, data: Union[Mapping, BaseModel]) -> ValidationResult:
        """Check form input without recording it."""
        return self._validator.validate(
            data,
            rates=self._rates,
            existing=self.ledger.entries(),
        )

    async def record_income(
        self,
        user_id: str,
        data: Union[Mapping, BaseModel],
    ) -> tuple[IncomeEntry, ValidationResult]:
        """
        Record one income entry.

        Returns:
            (entry, validation_result). Warnings in the result do not
            block recording.

        Raises:
            InvalidEntry: If validation found blocking errors
        """
        result = self.validate(data)

        if not result.schema_valid:
            fields = sorted({i.field for i in result.issues if i.severity == "error"})
            await self._audit_logger.log_entry_rejected(
                fields=fields,
                reason="; ".join(i.message for i in result.issues if i.severity == "error"),
            )
            raise InvalidEntry(
                self._validator.get_user_friendly_summary(result),
                fields=fields,
            )

        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        candidate = self._validator.to_candidate(data)

        try:
            entry = self.ledger.add_entry(candidate)
        except InvalidEntry as e:
            await self._audit_logger.log_entry_rejected(fields=e.fields, reason=str(e))
            raise

        await self._audit_logger.log_entry_added(
            entry_id=entry.id,
            original=f"{entry.amount} {entry.currency.value}",
            domestic_value=f"{entry.domestic_value:.2f}",
        )
        await self._audit_threshold()

        if self._income_storage is not None:
            try:
                await self._income_storage.add_income_entry(user_id, entry)
            except StorageError as e:
                logger.error("income_save_failed", entry_id=str(entry.id), error=str(e))
                await self._audit_logger.log_save_failed(
                    entity_type="entry",
                    error_message=str(e),
                    entity_id=entry.id,
                )
                self.notifications.notify(
                    self.SAVE_FAILED_TITLE,
                    "The entry is shown on your dashboard but was not saved. "
                    "It will be lost when you leave this page.",
                    NotificationSeverity.WARNING,
                )

        self.notifications.notify(
            self.ADDED_TITLE,
            f"{entry.amount} {entry.currency.value} = "
            f"{entry.domestic_value:.2f} {DOMESTIC_CURRENCY} recorded",
            NotificationSeverity.SUCCESS,
        )

        return entry, result

    async def _audit_threshold(self) -> None:
        status = self.ledger.threshold_status()
        if status.state == ThresholdState.EXCEEDED:
            await self._audit_logger.log_threshold_exceeded(
                total=str(status.total),
                threshold=str(status.threshold),
            )
        elif status.state == ThresholdState.APPROACHING:
            await self._audit_logger.log_threshold_approaching(
                total=str(status.total),
                headroom=str(status.headroom),
            )

    async def fetch_rates(self) -> Optional[RateTable]:
        """
        Refresh the rate table.

        Returns None (and notifies the user) if the source fails.
        """
        try:
            table = await asyncio.to_thread(self._rate_source.fetch_rates)
        except RateFetchError as e:
            await self._audit_logger.log_rates_fetch_failed(
                source=self._rate_source.name,
                error_message=str(e),
            )
            self.notifications.notify(
                self.RATES_FAILED_TITLE,
                "Current exchange rates could not be fetched. "
                "You can still enter a rate manually.",
                NotificationSeverity.WARNING,
            )
            return None

        self._rates = table
        await self._audit_logger.log_rates_fetched(
            source=table.source,
            currencies=[q.code.value for q in table.quotes],
        )
        return table

    def rate_for(self, currency: Currency) -> Optional[Decimal]:
        """Configured side of the current quote, or None without rates."""
        if self._rates is None:
            return None
        try:
            return resolve_rate(self._rates, currency, self._rate_side)
        except RateFetchError:
            return None

    async def export(
        self,
        kind: ExportKind,
        profile: Optional[UserProfile] = None,
    ) -> tuple[bytes, str]:
        """
        Generate a download from the current ledger.

        Returns:
            (content, filename)

        Raises:
            ExportError: Unknown kind, missing profile or rendering failure
        """
        entries = self.ledger.entries()
        summary = ExportSummary.from_ledger(self.ledger)

        try:
            content = format_entries(entries, kind, summary, profile=profile)
        except ExportError as e:
            await self._audit_logger.log_export_failed(
                kind=getattr(kind, "value", str(kind)),
                error_message=str(e),
            )
            self.notifications.notify(
                self.EXPORT_FAILED_TITLE,
                str(e),
                NotificationSeverity.WARNING,
            )
            raise

        kind = ExportKind(kind)
        filename = export_filename(kind, profile=profile)
        await self._audit_logger.log_export_generated(
            kind=kind.value,
            entry_count=len(entries),
            size_bytes=len(content),
        )
        return content, filename

    async def toggle_task(self, task_id: int) -> ComplianceTask:
        """
        Flip a compliance task.

        Raises:
            KeyError: If no task has this id
        """
        task = self.tasks.toggle(task_id)
        if task.completed:
            await self._audit_logger.log_task_completed(task_id=task.id, text=task.text)
        return task


class RegistrationFlow:
    """
    Orchestrates signup.

    Without profile storage (demo mode) the profile is built and returned
    but not persisted.
    """

    def __init__(
        self,
        profile_storage: Optional[ProfileStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifications: Optional[NotificationCenter] = None,
    ):
        self._profile_storage = profile_storage
        self._audit_logger = audit_logger or AuditLogger()
        self.notifications = notifications or NotificationCenter()

    @property
    def is_demo(self) -> bool:
        return self._profile_storage is None

    async def register(self, wizard: SignupWizard, user_id: str) -> UserProfile:
        """
        Persist the profile collected by the wizard.

        Raises:
            ValueError: If the wizard is incomplete
            DuplicateError: If the user already has a profile
            StorageError: If the profile could not be saved
        """
        profile = wizard.build_profile()

        if self._profile_storage is not None:
            try:
                await self._profile_storage.create_profile(user_id, profile)
            except StorageError as e:
                await self._audit_logger.log_save_failed(
                    entity_type="profile",
                    error_message=str(e),
                )
                raise
            await self._audit_logger.log_profile_created(user_id=user_id)
        else:
            logger.info("profile_not_persisted_demo_mode", user_id=user_id)

        self._audit_logger.bind_user(user_id)
        self.notifications.notify(
            f"Welcome, {profile.first_name}!",
            "Your account is ready. Start by recording your first income.",
            NotificationSeverity.SUCCESS,
        )
        return profile

    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        """Stored profile, or None if missing, unavailable or in demo mode."""
        if self._profile_storage is None:
            return None
        try:
            return await self._profile_storage.fetch_profile(user_id)
        except StorageError as e:
            await self._audit_logger.log_profile_fetch_failed(
                user_id=user_id,
                error_message=str(e),
            )
            return None


def create_app_components(
    use_storage: bool = True,
) -> tuple[IncomeTrackingFlow, RegistrationFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Without it the app runs in demo mode: in-memory
                    income and audit storage, sample entries, and
                    profiles that are not persisted.

    Returns:
        (income_flow, registration_flow, sheets_client)
    """
    sheets_client = None
    profile_storage = None
    income_storage = None
    seed_entries: list[IncomeEntry] = []

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            profile_storage = GoogleSheetsProfileStorage(sheets_client)
            income_storage = GoogleSheetsIncomeStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in demo mode
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            profile_storage = None
            income_storage = None

    if sheets_client is None:
        income_storage = InMemoryIncomeStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
        seed_entries = demo_entries()

    notifications = NotificationCenter(welcome=True)

    income_flow = IncomeTrackingFlow(
        income_storage=income_storage,
        audit_logger=audit_logger,
        notifications=notifications,
        seed_entries=seed_entries,
    )

    registration_flow = RegistrationFlow(
        profile_storage=profile_storage,
        audit_logger=audit_logger,
        notifications=notifications,
    )

    return income_flow, registration_flow, sheets_client
