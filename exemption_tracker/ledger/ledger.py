"""
Exemption Ledger

The single source of truth for foreign income and exemption-limit status.

The ledger:
- Accepts candidate entries, validates them, and stores them immutably
- Computes domestic value once per entry (amount * captured rate)
- Classifies the running total against the configured threshold after
  every add, raising at most one notification per call
- Serves read-only projections (totals, headroom, monthly and currency
  breakdowns) for charts and exports

The ledger never talks to storage or rate services. Rates and previously
stored entries arrive as plain inputs.
"""

import threading
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from exemption_tracker.models.income import (
    DOMESTIC_CURRENCY,
    Currency,
    IncomeEntry,
    IncomeEntryCandidate,
    MonthlyBucket,
    NotificationSeverity,
    ThresholdState,
    ThresholdStatus,
)
from exemption_tracker.notifications import NotificationSink


ZERO = Decimal("0")

logger = structlog.get_logger()


class InvalidEntry(ValueError):
    """A candidate entry failed validation; the ledger was not modified."""

    def __init__(self, message: str, fields: Optional[list[str]] = None):
        self.fields = fields or []
        super().__init__(message)


def format_amount(value: Decimal, places: int = 0) -> str:
    """Group thousands with commas, e.g. 6000 -> '6,000'."""
    return f"{value:,.{places}f}"


class ExemptionLedger:
    """
    Owns the income entries of one user session.

    Thread-safety: add_entry runs under a per-instance lock so two
    concurrent adds never interleave their total/threshold evaluation.
    Read operations take the same lock to see a consistent snapshot.
    """

    EXCEEDED_TITLE = "Exemption limit exceeded"
    APPROACHING_TITLE = "Approaching the exemption limit"

    def __init__(
        self,
        threshold: Decimal,
        approaching_ratio: Decimal,
        sink: Optional[NotificationSink] = None,
        entries: Iterable[IncomeEntry] = (),
        notify_on_transition_only: bool = False,
    ):
        """
        Initialize the ledger.

        Args:
            threshold: Exemption cap in the domestic currency (> 0).
            approaching_ratio: Early-warning fraction of the cap, in (0, 1).
            sink: Receives threshold notifications. None disables them.
            entries: Previously recorded entries, oldest first. Seeding
                    does not raise notifications.
            notify_on_transition_only: Only notify when the state differs
                    from the one after the previous add.
        """
        threshold = Decimal(str(threshold))
        approaching_ratio = Decimal(str(approaching_ratio))
        if threshold <= ZERO:
            raise ValueError(f"threshold must be positive, got {threshold}")
        if not ZERO < approaching_ratio < Decimal("1"):
            raise ValueError(f"approaching_ratio must be in (0, 1), got {approaching_ratio}")

        self._threshold = threshold
        self._approaching_ratio = approaching_ratio
        self._sink = sink
        self._notify_on_transition_only = notify_on_transition_only
        self._lock = threading.RLock()

        # Insertion order, oldest first
        self._entries: list[IncomeEntry] = []
        self._ids: set = set()
        self._running_total = ZERO

        for entry in entries:
            self._append(entry)

        self._last_state = self._classify(self._running_total)

    @classmethod
    def from_settings(cls, settings, sink: Optional[NotificationSink] = None,
                      entries: Iterable[IncomeEntry] = ()) -> "ExemptionLedger":
        """Build a ledger from ExemptionSettings."""
        return cls(
            threshold=settings.threshold,
            approaching_ratio=settings.approaching_ratio,
            sink=sink,
            entries=entries,
            notify_on_transition_only=settings.notify_on_transition_only,
        )

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def threshold(self) -> Decimal:
        return self._threshold

    @property
    def approaching_ratio(self) -> Decimal:
        return self._approaching_ratio

    @property
    def approaching_boundary(self) -> Decimal:
        return self._threshold * self._approaching_ratio

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add_entry(
        self,
        candidate: Union[IncomeEntryCandidate, Mapping],
    ) -> IncomeEntry:
        """
        Record a new income entry.

        Args:
            candidate: Entry fields without an id, as a model or mapping.

        Returns:
            The stored entry with its assigned id and domestic value.

        Raises:
            InvalidEntry: amount or rate not positive, unknown currency,
                         or missing fields. The ledger is left unchanged.
        """
        validated = self._validate(candidate)
        entry = IncomeEntry.from_candidate(validated)

        with self._lock:
            self._append(entry)
            total = self._running_total
            state = self._classify(total)
            previous = self._last_state
            self._last_state = state

            logger.info(
                "ledger_entry_added",
                entry_id=str(entry.id),
                currency=entry.currency.value,
                domestic_value=str(entry.domestic_value),
                total=str(total),
                state=state.value,
            )

            if not (self._notify_on_transition_only and state == previous):
                self._emit(state, total)

        return entry

    def _validate(self, candidate) -> IncomeEntryCandidate:
        if isinstance(candidate, BaseModel):
            data = candidate.model_dump()
        elif isinstance(candidate, Mapping):
            data = dict(candidate)
        else:
            raise InvalidEntry(
                f"Unsupported candidate type: {type(candidate).__name__}"
            )

        try:
            return IncomeEntryCandidate.model_validate(data)
        except ValidationError as e:
            fields = sorted({
                str(err["loc"][0]) for err in e.errors() if err.get("loc")
            })
            logger.warning("ledger_entry_rejected", fields=fields)
            raise InvalidEntry(
                f"Invalid income entry: {', '.join(fields) or 'unknown field'}",
                fields=fields,
            ) from e

    def _append(self, entry: IncomeEntry) -> None:
        if entry.id in self._ids:
            raise InvalidEntry(f"Duplicate entry id: {entry.id}", fields=["id"])
        self._entries.append(entry)
        self._ids.add(entry.id)
        self._running_total += entry.domestic_value

    def _classify(self, total: Decimal) -> ThresholdState:
        # Exceeded is checked first so a single add crossing both
        # boundaries reports only the stronger state
        if total > self._threshold:
            return ThresholdState.EXCEEDED
        if total > self.approaching_boundary:
            return ThresholdState.APPROACHING
        return ThresholdState.NORMAL

    def _emit(self, state: ThresholdState, total: Decimal) -> None:
        if state == ThresholdState.NORMAL or self._sink is None:
            return

        if state == ThresholdState.EXCEEDED:
            title = self.EXCEEDED_TITLE
            message = (
                f"Your total income has exceeded the {format_amount(self._threshold)} "
                f"{DOMESTIC_CURRENCY} exemption limit. "
                "You may need to work with a financial advisor."
            )
            severity = NotificationSeverity.WARNING
        else:
            headroom = self._threshold - total
            title = self.APPROACHING_TITLE
            message = (
                f"Your current income is {format_amount(total)} {DOMESTIC_CURRENCY}. "
                f"{format_amount(headroom)} {DOMESTIC_CURRENCY} left before the limit."
            )
            severity = NotificationSeverity.INFO

        logger.info("ledger_threshold_crossed", state=state.value, total=str(total))
        self._sink.notify(title, message, severity)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def entries(self) -> list[IncomeEntry]:
        """All entries, most recently added first (not sorted by date)."""
        with self._lock:
            return list(reversed(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def total_domestic_value(self) -> Decimal:
        """Sum of every entry's domestic value."""
        with self._lock:
            return self._running_total

    def recompute_total(self) -> Decimal:
        """From-scratch sum; always equal to total_domestic_value()."""
        with self._lock:
            return sum((e.domestic_value for e in self._entries), ZERO)

    def remaining_headroom(self) -> Decimal:
        """threshold - total. Negative once exceeded, never clamped."""
        return self._threshold - self.total_domestic_value()

    def threshold_state(self) -> ThresholdState:
        return self._classify(self.total_domestic_value())

    def threshold_status(self) -> ThresholdStatus:
        total = self.total_domestic_value()
        return ThresholdStatus(
            state=self._classify(total),
            total=total,
            threshold=self._threshold,
            approaching_boundary=self.approaching_boundary,
            headroom=self._threshold - total,
        )

    def monthly_breakdown(self) -> list[MonthlyBucket]:
        """
        Group entries by calendar month of their date.

        Buckets are ordered by their zero-padded YYYY-MM key.
        """
        buckets: dict[str, MonthlyBucket] = {}
        with self._lock:
            entries = list(self._entries)

        for entry in entries:
            key = entry.month_key
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = MonthlyBucket(month=key)
            bucket.total_domestic_value += entry.domestic_value
            bucket.amounts_by_currency[entry.currency] = (
                bucket.amounts_by_currency.get(entry.currency, ZERO) + entry.amount
            )
            bucket.entry_count += 1

        return [buckets[key] for key in sorted(buckets)]

    def currency_distribution(self) -> dict[Currency, Decimal]:
        """Domestic value per original currency."""
        distribution: dict[Currency, Decimal] = {}
        with self._lock:
            entries = list(self._entries)
        for entry in entries:
            distribution[entry.currency] = (
                distribution.get(entry.currency, ZERO) + entry.domestic_value
            )
        return distribution
