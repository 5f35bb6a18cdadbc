"""
Static rate source.

Fixed quotes for development, demo mode and tests, so the dashboard
works without network access.
"""

from decimal import Decimal

from exemption_tracker.models.income import Currency, RateQuote, RateTable
from exemption_tracker.services.rates.interface import RateSourceInterface


class StaticRateSource(RateSourceInterface):
    """Returns the same rate table every time."""

    name = "static"

    DEFAULT_QUOTES = [
        RateQuote(code=Currency.USD, name="US Dollar",
                  buying=Decimal("34.1250"), selling=Decimal("34.2150")),
        RateQuote(code=Currency.EUR, name="Euro",
                  buying=Decimal("37.0520"), selling=Decimal("37.1580")),
        RateQuote(code=Currency.GBP, name="British Pound",
                  buying=Decimal("43.2180"), selling=Decimal("43.3450")),
    ]

    def __init__(self, quotes: list[RateQuote] = None):
        self._quotes = list(quotes) if quotes is not None else list(self.DEFAULT_QUOTES)

    def fetch_rates(self) -> RateTable:
        return RateTable(source=self.name, quotes=self._quotes)
