"""
Two-Stage Income Entry Validation

Runs on the raw form input before the ledger sees an entry.

STAGE 1 - SCHEMA VALIDATION:
- Amount and rate present and positive
- Currency supported
- Date present and parseable

STAGE 2 - SEMANTIC VALIDATION:
- Dates too far in the future or too old
- Rates far off the current quote
- Implausibly large amounts
- Likely duplicates of an existing entry

Stage 2 only produces warnings: the user may still record the entry.
Validation never fixes values; it reports them for the user to review.
"""

from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from pydantic import BaseModel

from exemption_tracker.config import get_settings
from exemption_tracker.models.income import (
    Currency,
    IncomeEntry,
    IncomeEntryCandidate,
    RateTable,
    ValidationIssue,
    ValidationResult,
)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    # NaN and Infinity are not amounts
    return parsed if parsed.is_finite() else None


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


class IncomeEntryValidator:
    """
    Validates income form input through a two-stage pipeline.

    Stage 1: Schema validation (blocking errors)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(
        self,
        rate_tolerance: Optional[float] = None,
        rate_side: Optional[str] = None,
    ):
        """
        Initialize validator.

        Args:
            rate_tolerance: Allowed relative deviation from the quoted rate.
                           Defaults to the configured deviation tolerance.
            rate_side: Quote side ("buying" or "selling") the rate is
                       compared with. Defaults to the configured side.
        """
        settings = get_settings()
        self._settings = settings.app
        self._rate_tolerance = Decimal(str(
            rate_tolerance if rate_tolerance is not None
            else settings.rates.deviation_tolerance
        ))
        self._rate_side = rate_side or settings.rates.rate_side

    def _validate_schema(self, data: Mapping) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        amount = _to_decimal(data.get("amount"))
        if data.get("amount") in (None, ""):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter the amount you received",
            ))
        elif amount is None or amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a number greater than zero",
                severity="error",
                suggested_fix="Check the amount for typos",
            ))

        rate = _to_decimal(data.get("exchange_rate"))
        if data.get("exchange_rate") in (None, ""):
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="missing",
                message="Exchange rate is required",
                severity="error",
                suggested_fix="Fetch today's rates or enter the rate manually",
            ))
        elif rate is None or rate <= 0:
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="invalid_value",
                message="Exchange rate must be a number greater than zero",
                severity="error",
                suggested_fix="Fetch today's rates or enter the rate manually",
            ))

        currency = data.get("currency")
        if isinstance(currency, Currency):
            currency = currency.value
        if currency not in {c.value for c in Currency}:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_value",
                message=f"Unsupported currency: {currency}",
                severity="error",
                suggested_fix="Choose one of " + ", ".join(c.value for c in Currency),
            ))

        if _to_date(data.get("date")) is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="A valid date is required",
                severity="error",
                suggested_fix="Use the YYYY-MM-DD format",
            ))

        if not str(data.get("description") or "").strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="No description given",
                severity="warning",
                suggested_fix="A short label such as 'Stripe payout' helps later",
            ))

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        candidate: IncomeEntryCandidate,
        rates: Optional[RateTable],
        existing: Iterable[IncomeEntry],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        today = date.today()

        max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
        if candidate.date > max_future:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date {candidate.date} is in the future",
                severity="warning",
                suggested_fix="Record income on the day it was received",
            ))

        oldest = today - timedelta(days=self._settings.max_entry_age_days)
        if candidate.date < oldest:
            issues.append(ValidationIssue(
                field="date",
                issue_type="old_date",
                message=f"Date {candidate.date} is more than two years ago",
                severity="warning",
                suggested_fix="Please verify the year",
            ))

        if candidate.amount > Decimal(str(self._settings.max_entry_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount {candidate.amount} {candidate.currency.value} is unusually large",
                severity="warning",
                suggested_fix="Check for an extra digit",
            ))

        quote = rates.get(candidate.currency) if rates is not None else None
        if quote is not None:
            quoted = quote.rate_for(self._rate_side)
            deviation = abs(candidate.exchange_rate - quoted) / quoted
            if deviation > self._rate_tolerance:
                issues.append(ValidationIssue(
                    field="exchange_rate",
                    issue_type="suspicious_value",
                    message=(
                        f"Rate {candidate.exchange_rate} differs from the current "
                        f"{candidate.currency.value} quote {quoted} by {deviation:.0%}"
                    ),
                    severity="warning",
                    suggested_fix="Use the rate from the day the income was received",
                ))

        for entry in existing:
            if (
                entry.date == candidate.date
                and entry.amount == candidate.amount
                and entry.currency == candidate.currency
            ):
                issues.append(ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"An entry of {entry.amount} {entry.currency.value} "
                        f"on {entry.date} already exists"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                ))
                break

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        data: Union[Mapping, BaseModel],
        rates: Optional[RateTable] = None,
        existing: Iterable[IncomeEntry] = (),
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            data: Form values (date, description, amount, currency, exchange_rate)
            rates: Current quotes for the rate deviation check
            existing: Recorded entries for the duplicate check

        Returns:
            ValidationResult with all issues found
        """
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")

        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(data)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            candidate = self.to_candidate(data)
            semantic_valid, semantic_issues = self._validate_semantic(
                candidate, rates, existing
            )
            all_issues.extend(semantic_issues)

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    @staticmethod
    def to_candidate(data: Mapping) -> IncomeEntryCandidate:
        """Build the ledger candidate from schema-valid form values."""
        return IncomeEntryCandidate(
            date=_to_date(data.get("date")),
            description=str(data.get("description") or ""),
            amount=_to_decimal(data.get("amount")),
            currency=Currency(data.get("currency")),
            exchange_rate=_to_decimal(data.get("exchange_rate")),
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if not result.schema_valid:
            lines.append("❌ Some required information is missing or invalid:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.schema_valid:
            lines.append("You can still record this entry, but please review it.")
        else:
            lines.append("Please fix the issues above before continuing.")

        return "\n".join(lines)
