"""
Tests for the exemption ledger.

Threshold 67000 with ratio 0.9 puts the approaching boundary at 60300.
"""

import threading
from datetime import date
from decimal import Decimal

import pytest

from exemption_tracker.ledger import ExemptionLedger, InvalidEntry, format_amount
from exemption_tracker.models.income import (
    Currency,
    IncomeEntryCandidate,
    NotificationSeverity,
    ThresholdState,
)
from exemption_tracker.notifications import NotificationCenter


def candidate(amount, rate, currency=Currency.USD, on=date(2025, 3, 1)):
    return IncomeEntryCandidate(
        date=on,
        description="payout",
        amount=Decimal(amount),
        currency=currency,
        exchange_rate=Decimal(rate),
    )


class TestAddEntry:
    """Tests for recording entries."""

    def test_domestic_value_is_amount_times_rate(self, ledger, stripe_payment):
        """Test that the domestic value is computed once at creation."""
        entry = ledger.add_entry(stripe_payment)
        assert entry.domestic_value == Decimal("17060")
        assert entry.exchange_rate == Decimal("34.12")

    def test_entries_get_unique_ids(self, ledger, stripe_payment):
        """Test that identical candidates still get distinct ids."""
        first = ledger.add_entry(stripe_payment)
        second = ledger.add_entry(stripe_payment)
        assert first.id != second.id

    def test_accepts_mapping_candidate(self, ledger):
        """Test that plain dicts are validated like models."""
        entry = ledger.add_entry({
            "date": "2025-01-15",
            "description": "Stripe payment",
            "amount": "500",
            "currency": "USD",
            "exchange_rate": "34.12",
        })
        assert entry.currency == Currency.USD
        assert entry.domestic_value == Decimal("17060")

    def test_entries_newest_first_by_insertion(self, ledger):
        """Test that display order follows insertion, not the entry date."""
        later_date = ledger.add_entry(candidate("1", "30", on=date(2025, 6, 1)))
        earlier_date = ledger.add_entry(candidate("1", "30", on=date(2025, 1, 1)))
        assert ledger.entries() == [earlier_date, later_date]

    def test_entries_are_immutable(self, ledger, stripe_payment):
        """Test that stored entries cannot be changed."""
        entry = ledger.add_entry(stripe_payment)
        with pytest.raises(Exception):
            entry.amount = Decimal("1")

    @pytest.mark.parametrize("amount,rate", [
        ("0", "34.12"),
        ("-5", "34.12"),
        ("500", "0"),
        ("500", "-1"),
    ])
    def test_invalid_amount_or_rate_rejected(self, ledger, stripe_payment, amount, rate):
        """Test that non-positive values raise InvalidEntry and change nothing."""
        ledger.add_entry(stripe_payment)
        before = ledger.total_domestic_value()

        with pytest.raises(InvalidEntry):
            ledger.add_entry({
                "date": "2025-03-01",
                "amount": amount,
                "currency": "USD",
                "exchange_rate": rate,
            })

        assert ledger.total_domestic_value() == before
        assert len(ledger) == 1

    def test_unknown_currency_rejected(self, ledger):
        """Test that currencies outside the set are refused."""
        with pytest.raises(InvalidEntry) as exc_info:
            ledger.add_entry({
                "date": "2025-03-01",
                "amount": "10",
                "currency": "JPY",
                "exchange_rate": "0.2",
            })
        assert exc_info.value.fields == ["currency"]
        assert len(ledger) == 0

    def test_missing_fields_reported(self, ledger):
        """Test that the error names every missing field."""
        with pytest.raises(InvalidEntry) as exc_info:
            ledger.add_entry({"description": "no numbers"})
        assert set(exc_info.value.fields) == {"date", "amount", "currency", "exchange_rate"}

    def test_unsupported_candidate_type(self, ledger):
        """Test that arbitrary objects are rejected."""
        with pytest.raises(InvalidEntry):
            ledger.add_entry(["not", "a", "candidate"])


class TestTotals:
    """Tests for totals and headroom."""

    def test_total_matches_independent_sum(self, ledger):
        """Test that the running total equals amount * rate summed separately."""
        inputs = [("500", "34.12"), ("300", "37.05"), ("120.50", "43.2180"), ("0.01", "34.1250")]
        for amount, rate in inputs:
            ledger.add_entry(candidate(amount, rate))

        expected = sum(Decimal(a) * Decimal(r) for a, r in inputs)
        assert ledger.total_domestic_value() == expected
        assert ledger.recompute_total() == expected

    def test_total_is_idempotent(self, ledger, stripe_payment):
        """Test that reading the total twice gives the same value."""
        ledger.add_entry(stripe_payment)
        assert ledger.total_domestic_value() == ledger.total_domestic_value()

    def test_empty_ledger(self, ledger):
        """Test the totals of a fresh ledger."""
        assert ledger.total_domestic_value() == Decimal("0")
        assert ledger.remaining_headroom() == Decimal("67000")
        assert ledger.threshold_state() == ThresholdState.NORMAL
        assert ledger.monthly_breakdown() == []
        assert ledger.currency_distribution() == {}


class TestThresholdNotifications:
    """Tests for the Normal -> Approaching -> Exceeded sequence."""

    def test_sequence(self, ledger, center, stripe_payment, paypal_payment):
        """Test states and notifications at 28175, 61000 and 70000."""
        ledger.add_entry(stripe_payment)
        ledger.add_entry(paypal_payment)
        assert ledger.total_domestic_value() == Decimal("28175")
        assert ledger.threshold_state() == ThresholdState.NORMAL
        assert center.notifications == []

        # 1000 USD at 32.825 = 32825 -> total 61000
        ledger.add_entry(candidate("1000", "32.825"))
        assert ledger.total_domestic_value() == Decimal("61000")
        assert ledger.threshold_state() == ThresholdState.APPROACHING
        assert len(center.notifications) == 1
        approaching = center.notifications[0]
        assert approaching.severity == NotificationSeverity.INFO
        assert "61,000" in approaching.message
        assert "6,000" in approaching.message

        # 300 GBP at 30 = 9000 -> total 70000
        ledger.add_entry(candidate("300", "30", currency=Currency.GBP))
        assert ledger.threshold_state() == ThresholdState.EXCEEDED
        assert len(center.notifications) == 2
        exceeded = center.notifications[0]
        assert exceeded.severity == NotificationSeverity.WARNING
        assert "67,000" in exceeded.message
        assert "exceeded" in exceeded.message
        assert ledger.remaining_headroom() == Decimal("-3000")

    def test_boundary_is_strict(self, ledger, center):
        """Test that exactly 60300 is still Normal and exactly 67000 is not Exceeded."""
        ledger.add_entry(candidate("60300", "1"))
        assert ledger.threshold_state() == ThresholdState.NORMAL
        assert center.notifications == []

        ledger.add_entry(candidate("6700", "1"))
        assert ledger.total_domestic_value() == Decimal("67000")
        assert ledger.threshold_state() == ThresholdState.APPROACHING

    def test_single_add_crossing_both_boundaries(self, ledger, center):
        """Test that only the Exceeded warning is raised."""
        ledger.add_entry(candidate("2000", "40"))
        assert len(center.notifications) == 1
        assert center.notifications[0].title == ExemptionLedger.EXCEEDED_TITLE

    def test_exceeded_repeats_on_every_add(self, ledger, center):
        """Test level-triggered notifications."""
        ledger.add_entry(candidate("2000", "40"))
        ledger.add_entry(candidate("1", "30"))
        ledger.add_entry(candidate("1", "30"))
        titles = [n.title for n in center.notifications]
        assert titles == [ExemptionLedger.EXCEEDED_TITLE] * 3

    def test_transition_only_mode(self, center):
        """Test that edge-triggered mode notifies once per state change."""
        ledger = ExemptionLedger(
            threshold=Decimal("67000"),
            approaching_ratio=Decimal("0.9"),
            sink=center,
            notify_on_transition_only=True,
        )
        ledger.add_entry(candidate("61000", "1"))
        ledger.add_entry(candidate("100", "1"))
        ledger.add_entry(candidate("9000", "1"))
        ledger.add_entry(candidate("100", "1"))

        titles = [n.title for n in center.notifications]
        assert titles == [ExemptionLedger.EXCEEDED_TITLE, ExemptionLedger.APPROACHING_TITLE]

    def test_no_sink_is_allowed(self):
        """Test that a ledger without a sink still classifies."""
        ledger = ExemptionLedger(threshold=Decimal("100"), approaching_ratio=Decimal("0.5"))
        ledger.add_entry(candidate("200", "1"))
        assert ledger.threshold_state() == ThresholdState.EXCEEDED

    def test_seeding_does_not_notify(self, center, stripe_payment):
        """Test that entries passed at construction are silent."""
        seeded = ExemptionLedger(
            threshold=Decimal("10000"),
            approaching_ratio=Decimal("0.9"),
            sink=center,
            entries=[ExemptionLedger(Decimal("1"), Decimal("0.5")).add_entry(stripe_payment)],
        )
        assert seeded.threshold_state() == ThresholdState.EXCEEDED
        assert center.notifications == []

    def test_threshold_status_snapshot(self, ledger):
        """Test the status model used by the dashboard."""
        ledger.add_entry(candidate("33500", "1"))
        status = ledger.threshold_status()
        assert status.state == ThresholdState.NORMAL
        assert status.approaching_boundary == Decimal("60300")
        assert status.headroom == Decimal("33500")
        assert status.usage_ratio == pytest.approx(0.5)


class TestConfiguration:
    """Tests for constructor validation."""

    @pytest.mark.parametrize("threshold,ratio", [
        ("0", "0.9"),
        ("-1", "0.9"),
        ("67000", "0"),
        ("67000", "1"),
        ("67000", "1.5"),
    ])
    def test_rejects_bad_configuration(self, threshold, ratio):
        """Test that threshold must be positive and the ratio in (0, 1)."""
        with pytest.raises(ValueError):
            ExemptionLedger(threshold=Decimal(threshold), approaching_ratio=Decimal(ratio))

    def test_from_settings(self):
        """Test building from the default settings."""
        from exemption_tracker.config import ExemptionSettings

        ledger = ExemptionLedger.from_settings(ExemptionSettings())
        assert ledger.threshold == Decimal("67000")
        assert ledger.approaching_boundary == Decimal("60300")


class TestBreakdowns:
    """Tests for chart projections."""

    def test_monthly_breakdown(self, ledger, stripe_payment, paypal_payment):
        """Test two entries in two months."""
        ledger.add_entry(paypal_payment)
        ledger.add_entry(stripe_payment)

        buckets = ledger.monthly_breakdown()
        assert [b.month for b in buckets] == ["2025-01", "2025-02"]
        assert [b.entry_count for b in buckets] == [1, 1]
        assert buckets[0].total_domestic_value == Decimal("17060")
        assert buckets[1].total_domestic_value == Decimal("11115")
        assert buckets[0].amounts_by_currency == {Currency.USD: Decimal("500")}

    def test_monthly_breakdown_sums_within_month(self, ledger):
        """Test that entries in the same month share a bucket."""
        ledger.add_entry(candidate("100", "30", on=date(2025, 3, 1)))
        ledger.add_entry(candidate("50", "40", currency=Currency.EUR, on=date(2025, 3, 31)))
        ledger.add_entry(candidate("10", "30", on=date(2025, 3, 15)))

        (bucket,) = ledger.monthly_breakdown()
        assert bucket.month == "2025-03"
        assert bucket.entry_count == 3
        assert bucket.total_domestic_value == Decimal("5300")
        assert bucket.amounts_by_currency == {
            Currency.USD: Decimal("110"),
            Currency.EUR: Decimal("50"),
        }

    def test_currency_distribution(self, ledger, stripe_payment, paypal_payment):
        """Test domestic value per original currency."""
        ledger.add_entry(stripe_payment)
        ledger.add_entry(paypal_payment)
        assert ledger.currency_distribution() == {
            Currency.USD: Decimal("17060"),
            Currency.EUR: Decimal("11115"),
        }


class TestConcurrency:
    """Tests for concurrent adds."""

    def test_concurrent_adds_keep_total_consistent(self):
        """Test that parallel adds never lose an entry."""
        center = NotificationCenter()
        ledger = ExemptionLedger(
            threshold=Decimal("1000000"),
            approaching_ratio=Decimal("0.9"),
            sink=center,
        )

        def worker():
            for _ in range(50):
                ledger.add_entry(candidate("1", "1.5"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger) == 400
        assert ledger.total_domestic_value() == Decimal("600")
        assert ledger.recompute_total() == Decimal("600")


class TestFormatAmount:
    """Tests for the thousands formatter."""

    def test_groups_thousands(self):
        assert format_amount(Decimal("6000")) == "6,000"
        assert format_amount(Decimal("-3000")) == "-3,000"
        assert format_amount(Decimal("28175.5"), 2) == "28,175.50"
