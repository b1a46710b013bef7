"""Exchange rate services: the rate store, providers and conversion."""

from tripbudget.services.rates.converter import (
    Converter,
    RateError,
    RateNotFoundError,
    RateTable,
    TableConverter,
    convert,
    convert_strict,
)
from tripbudget.services.rates.providers import (
    RateProviderInterface,
    StaticRateProvider,
)
from tripbudget.services.rates.rate_store import (
    CachedRates,
    RatePersistError,
    RateRefreshError,
    RateStore,
)

__all__ = [
    # Conversion
    "Converter",
    "RateTable",
    "TableConverter",
    "convert",
    "convert_strict",
    # Providers
    "RateProviderInterface",
    "StaticRateProvider",
    # Store
    "CachedRates",
    "RateStore",
    # Exceptions
    "RateError",
    "RateNotFoundError",
    "RatePersistError",
    "RateRefreshError",
]
