"""Exchange rate sources."""

from exemption_tracker.services.rates.interface import (
    RateFetchError,
    RateSourceInterface,
    resolve_rate,
)
from exemption_tracker.services.rates.static import StaticRateSource
from exemption_tracker.services.rates.tcmb import TCMBRateSource, parse_tcmb_xml


RATE_SOURCE_REGISTRY: dict[str, type[RateSourceInterface]] = {
    StaticRateSource.name: StaticRateSource,
    TCMBRateSource.name: TCMBRateSource,
}


def get_rate_source(provider: str) -> RateSourceInterface:
    """
    Instantiate a rate source by its configured name.

    Raises:
        ValueError: If no source is registered under that name
    """
    source_class = RATE_SOURCE_REGISTRY.get(provider)
    if source_class is None:
        raise ValueError(f"Unknown rate provider: {provider}")
    return source_class()


__all__ = [
    "RATE_SOURCE_REGISTRY",
    "RateFetchError",
    "RateSourceInterface",
    "StaticRateSource",
    "TCMBRateSource",
    "get_rate_source",
    "parse_tcmb_xml",
    "resolve_rate",
]
