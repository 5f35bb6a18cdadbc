"""
Exchange Rate Source Interface

Rate sources are consulted BEFORE an entry is created. The caller picks one
rate from the table (buying by default) and passes it into the candidate;
the ledger never re-fetches.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from exemption_tracker.models.income import Currency, RateTable


class RateFetchError(Exception):
    """Rates could not be fetched or parsed."""
    pass


class RateSourceInterface(ABC):
    """Supplies a currency -> buying/selling rate table."""

    name: str = "unknown"

    @abstractmethod
    def fetch_rates(self) -> RateTable:
        """
        Fetch the current rate table.

        Raises:
            RateFetchError: If the source is unreachable or returns garbage
        """
        pass


def resolve_rate(table: RateTable, currency: Currency, side: str = "buying") -> Decimal:
    """
    Pick the rate to capture on a new entry.

    Raises:
        RateFetchError: If the table has no quote for the currency
    """
    quote = table.get(Currency(currency))
    if quote is None:
        raise RateFetchError(f"No {currency} quote from {table.source}")
    return quote.rate_for(side)
