"""
Central Bank of the Republic of Turkey (TCMB) rate source.

Reads the daily indicative rates published as XML at /kurlar/today.xml.
Each <Currency> element carries a Unit and ForexBuying/ForexSelling values;
rates are normalized to one unit of the foreign currency.

Example fragment:
    <Currency Kod="USD" CurrencyCode="USD">
        <Unit>1</Unit>
        <CurrencyName>US DOLLAR</CurrencyName>
        <ForexBuying>34.1250</ForexBuying>
        <ForexSelling>34.2150</ForexSelling>
    </Currency>
"""

import xml.etree.ElementTree as ET
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from exemption_tracker.config import RateSettings, get_settings
from exemption_tracker.models.income import Currency, RateQuote, RateTable
from exemption_tracker.services.rates.interface import RateFetchError, RateSourceInterface


logger = structlog.get_logger()


class TCMBRateSource(RateSourceInterface):
    """Fetches today's rates from the central bank."""

    name = "tcmb"

    def __init__(self, settings: Optional[RateSettings] = None):
        self._settings = settings or get_settings().rates

    @retry(
        retry=retry_if_exception_type(requests.RequestException),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _download(self) -> bytes:
        response = requests.get(
            self._settings.tcmb_url,
            timeout=self._settings.timeout_seconds,
        )
        response.raise_for_status()
        return response.content

    def fetch_rates(self) -> RateTable:
        try:
            payload = self._download()
        except requests.RequestException as e:
            logger.error("tcmb_request_failed", error=str(e), url=self._settings.tcmb_url)
            raise RateFetchError(f"Failed to reach TCMB: {e}") from e

        quotes = parse_tcmb_xml(payload)
        logger.info("tcmb_rates_fetched", currencies=[q.code.value for q in quotes])
        return RateTable(source=self.name, quotes=quotes)


def _decimal(element: ET.Element, tag: str) -> Optional[Decimal]:
    text = element.findtext(tag)
    if not text or not text.strip():
        return None
    try:
        return Decimal(text.strip())
    except InvalidOperation:
        return None


def parse_tcmb_xml(payload: bytes) -> list[RateQuote]:
    """
    Extract quotes for the supported currencies.

    Raises:
        RateFetchError: If the document is not valid XML or none of the
                       supported currencies has usable rates
    """
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise RateFetchError(f"Invalid TCMB response: {e}") from e

    supported = {c.value for c in Currency}
    quotes = []

    for element in root.iter("Currency"):
        code = element.get("CurrencyCode") or element.get("Kod")
        if code not in supported:
            continue

        buying = _decimal(element, "ForexBuying")
        selling = _decimal(element, "ForexSelling")
        if buying is None or selling is None or buying <= 0 or selling <= 0:
            logger.warning("tcmb_quote_skipped", currency=code)
            continue

        unit = _decimal(element, "Unit") or Decimal("1")
        quotes.append(RateQuote(
            code=Currency(code),
            name=(element.findtext("CurrencyName") or "").strip().title(),
            buying=buying / unit,
            selling=selling / unit,
        ))

    if not quotes:
        raise RateFetchError("TCMB response contained no supported currencies")

    return quotes
