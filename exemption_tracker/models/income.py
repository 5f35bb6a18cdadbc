"""
Core Data Models for the Exemption Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is Decimal everywhere.
Domestic values are computed once, when an entry is created, and stored.
Historical entries stay stable even if rate sources change later.
"""

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


DOMESTIC_CURRENCY = "TRY"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """
    Foreign currencies an income entry may be received in.

    DESIGN DECISION: A fixed set keeps rate lookups and breakdowns predictable.
    """
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class ThresholdState(str, Enum):
    """Where the running total sits relative to the exemption threshold."""
    NORMAL = "normal"
    APPROACHING = "approaching"
    EXCEEDED = "exceeded"


class NotificationSeverity(str, Enum):
    """Severity of a user-facing notification."""
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"


class IncomeSource(str, Enum):
    """Where the user's foreign income comes from."""
    DIGITAL_PLATFORMS = "digital_platforms"
    FREELANCE = "freelance"
    SOFTWARE_EXPORT = "software_export"
    OTHER = "other"


class CompanyStatus(str, Enum):
    """The user's business registration status."""
    NONE = "none"
    SOLE_PROPRIETORSHIP = "sole_proprietorship"
    LIMITED = "limited"


class ExportKind(str, Enum):
    """Downloadable report formats."""
    SPREADSHEET = "spreadsheet"
    CSV = "csv"
    DOCUMENT = "document"


# =============================================================================
# INCOME ENTRIES
# =============================================================================

class IncomeEntryCandidate(BaseModel):
    """
    A proposed income entry, before the ledger has accepted it.

    Everything except the identifier and the derived domestic value.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: dt.date = Field(
        ...,
        description="Calendar date the income was received"
    )
    description: str = Field(
        default="",
        max_length=200,
        description="Free-text label (e.g. 'Stripe payout')"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the original currency"
    )
    currency: Currency = Field(
        ...,
        description="Original currency"
    )
    exchange_rate: Decimal = Field(
        ...,
        gt=0,
        description="Currency to domestic rate at the moment of entry"
    )


class IncomeEntry(BaseModel):
    """
    One recorded foreign-income receipt.

    CRITICAL: Entries are immutable. There is no update operation;
    domestic_value is fixed at creation time.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry ID, never reused"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the entry was recorded"
    )
    date: dt.date
    description: str = ""
    amount: Decimal = Field(gt=0)
    currency: Currency
    exchange_rate: Decimal = Field(gt=0)
    domestic_value: Decimal = Field(
        ...,
        description="amount * exchange_rate in the domestic currency"
    )

    @model_validator(mode='after')
    def validate_domestic_value(self) -> 'IncomeEntry':
        """The stored domestic value must match the captured rate."""
        if self.domestic_value != self.amount * self.exchange_rate:
            raise ValueError(
                "domestic_value must equal amount * exchange_rate"
            )
        return self

    @classmethod
    def from_candidate(cls, candidate: IncomeEntryCandidate) -> 'IncomeEntry':
        """Create an entry, computing its domestic value once."""
        return cls(
            date=candidate.date,
            description=candidate.description,
            amount=candidate.amount,
            currency=candidate.currency,
            exchange_rate=candidate.exchange_rate,
            domestic_value=candidate.amount * candidate.exchange_rate,
        )

    @property
    def month_key(self) -> str:
        """Zero-padded YYYY-MM bucket key."""
        return self.date.strftime("%Y-%m")

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [id, created_at, date, description, amount, currency,
         exchange_rate, domestic_value]
        """
        return [
            str(self.id),
            self.created_at.isoformat(),
            self.date.isoformat(),
            self.description,
            str(self.amount),
            self.currency.value,
            str(self.exchange_rate),
            str(self.domestic_value),
        ]


# =============================================================================
# LEDGER PROJECTIONS
# =============================================================================

class ThresholdStatus(BaseModel):
    """Read-only snapshot of the ledger against its threshold."""

    state: ThresholdState
    total: Decimal
    threshold: Decimal
    approaching_boundary: Decimal
    headroom: Decimal = Field(
        ...,
        description="threshold - total; negative once exceeded"
    )

    @property
    def usage_ratio(self) -> float:
        """Share of the threshold used so far (may exceed 1)."""
        return float(self.total / self.threshold)


class MonthlyBucket(BaseModel):
    """Income received in one calendar month."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="YYYY-MM"
    )
    total_domestic_value: Decimal = Decimal("0")
    amounts_by_currency: dict[Currency, Decimal] = Field(default_factory=dict)
    entry_count: int = Field(default=0, ge=0)


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class Notification(BaseModel):
    """A message queued for the user."""

    id: UUID = Field(default_factory=uuid4)
    title: str
    message: str
    severity: NotificationSeverity = NotificationSeverity.INFO
    read: bool = False
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# USER PROFILE
# =============================================================================

class UserProfile(BaseModel):
    """
    Identity and tax-registration fields of a user.

    The password is never part of the profile; it only travels
    through the signup wizard.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    national_id: str = Field(
        ...,
        description="11-digit national identity number"
    )
    tax_office: str = Field(..., min_length=1, max_length=200)
    address: str = Field(default="", max_length=500)
    tax_id: str = Field(default="", max_length=20)
    phone: str = Field(default="", max_length=30)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    income_source: IncomeSource = IncomeSource.DIGITAL_PLATFORMS
    company_status: CompanyStatus = CompanyStatus.NONE

    @field_validator('national_id')
    @classmethod
    def validate_national_id(cls, v: str) -> str:
        """11 digits, first digit non-zero."""
        if len(v) != 11 or not v.isdigit() or v[0] == "0":
            raise ValueError("National ID must be 11 digits and not start with 0")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# =============================================================================
# EXCHANGE RATES
# =============================================================================

class RateQuote(BaseModel):
    """Buying and selling rate for one currency against the domestic one."""

    code: Currency
    name: str = ""
    buying: Decimal = Field(..., gt=0)
    selling: Decimal = Field(..., gt=0)

    def rate_for(self, side: str = "buying") -> Decimal:
        if side == "buying":
            return self.buying
        if side == "selling":
            return self.selling
        raise ValueError(f"Unknown rate side: {side}")


class RateTable(BaseModel):
    """A set of quotes fetched together from one source."""

    source: str
    fetched_at: datetime = Field(default_factory=datetime.utcnow)
    quotes: list[RateQuote] = Field(default_factory=list)

    def get(self, code: Currency) -> Optional[RateQuote]:
        for quote in self.quotes:
            if quote.code == code:
                return quote
        return None


# =============================================================================
# COMPLIANCE TASKS
# =============================================================================

class ComplianceTask(BaseModel):
    """A to-do item on the user's compliance checklist."""

    id: int = Field(..., ge=1)
    text: str = Field(..., min_length=1)
    details: str = ""
    completed: bool = False
    completed_date: Optional[date] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required values, positivity)
    Stage 2: Semantic validation (plausibility checks)
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
