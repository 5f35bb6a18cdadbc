"""Shared fixtures."""

import os
from datetime import date
from decimal import Decimal

import pytest

from exemption_tracker.config import get_settings
from exemption_tracker.ledger import ExemptionLedger
from exemption_tracker.models.income import (
    CompanyStatus,
    Currency,
    IncomeEntryCandidate,
    IncomeSource,
    UserProfile,
)
from exemption_tracker.notifications import NotificationCenter


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Default settings only: no .env file and no tracker variables."""
    monkeypatch.chdir(tmp_path)
    for prefix in ("EXEMPTION_", "RATES_", "GOOGLE_SHEETS_"):
        for name in list(os.environ):
            if name.startswith(prefix):
                monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def center():
    return NotificationCenter()


@pytest.fixture
def ledger(center):
    return ExemptionLedger(
        threshold=Decimal("67000"),
        approaching_ratio=Decimal("0.9"),
        sink=center,
    )


@pytest.fixture
def stripe_payment():
    """500 USD at 34.12 -> 17060 TRY."""
    return IncomeEntryCandidate(
        date=date(2025, 1, 15),
        description="Stripe payment",
        amount=Decimal("500"),
        currency=Currency.USD,
        exchange_rate=Decimal("34.12"),
    )


@pytest.fixture
def paypal_payment():
    """300 EUR at 37.05 -> 11115 TRY."""
    return IncomeEntryCandidate(
        date=date(2025, 2, 1),
        description="PayPal client payment",
        amount=Decimal("300"),
        currency=Currency.EUR,
        exchange_rate=Decimal("37.05"),
    )


@pytest.fixture
def profile():
    return UserProfile(
        first_name="Ayse",
        last_name="Yilmaz",
        national_id="12345678901",
        tax_office="Kadikoy",
        address="Moda Cad. 1, Istanbul",
        tax_id="1234567890",
        phone="+90 555 000 00 00",
        email="ayse@example.com",
        income_source=IncomeSource.SOFTWARE_EXPORT,
        company_status=CompanyStatus.SOLE_PROPRIETORSHIP,
    )
