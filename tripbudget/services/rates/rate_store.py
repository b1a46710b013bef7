"""
Exchange Rate Store

Holds the current rate table and when it was last refreshed.

Offline-first:
1. On startup the last refreshed table is read from the local cache
2. Without a usable cached table, the bundled default table is used
3. `refresh()` asks a provider for a new table, swaps it in, then caches it

DESIGN DECISION: When caching a refreshed table fails, the new table is still
used for the rest of the session. The failure is surfaced (RatePersistError)
so the caller knows the next start will fall back to older rates.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tripbudget.audit import AuditLogger
from tripbudget.models.audit import AuditEventBuilder
from tripbudget.models.catalog import DEFAULT_EXCHANGE_RATES, PIVOT_CURRENCY
from tripbudget.services.rates.converter import (
    RateError,
    RateNotFoundError,
    convert_strict,
)
from tripbudget.services.rates.providers import (
    RateProviderInterface,
    StaticRateProvider,
)
from tripbudget.services.storage.interface import (
    KeyValueStoreInterface,
    LocalCacheError,
)


logger = structlog.get_logger(__name__)


class RateRefreshError(RateError):
    """The provider could not supply a new rate table."""
    pass


class RatePersistError(RateError):
    """A refreshed table is in use but could not be written to the local cache."""

    def __init__(self, message: str, rates: dict[str, float], last_updated: datetime):
        self.rates = rates
        self.last_updated = last_updated
        super().__init__(message)


class CachedRates(BaseModel):
    """The cached slot: {"rates": {...}, "lastUpdated": ISO timestamp}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rates: dict[str, float] = Field(..., min_length=1)
    last_updated: Optional[datetime] = None


class RateStore:
    """
    Current exchange rate table plus its freshness timestamp.

    The table is replaced as a whole, never edited in place, so a reader
    holding the dict from `get_rates()` always sees a consistent table.
    """

    def __init__(
        self,
        cache: Optional[KeyValueStoreInterface] = None,
        provider: Optional[RateProviderInterface] = None,
        cache_key: str = "vsc_exchange_rates",
        default_rates: Optional[Mapping[str, float]] = None,
        audit_logger: Optional[AuditLogger] = None,
        pivot_currency: str = PIVOT_CURRENCY,
    ):
        self._cache = cache
        self._pivot = pivot_currency
        self._cache_key = cache_key
        self._provider = provider or StaticRateProvider()
        self._default_rates = dict(default_rates or DEFAULT_EXCHANGE_RATES)
        self._audit_logger = audit_logger or AuditLogger()
        self._is_updating = False

        self._rates, self._last_updated, self._source = self._load_initial()
        self._audit_logger.log(
            AuditEventBuilder.rates_loaded(self._source, len(self._rates))
        )

    def _load_initial(self) -> tuple[dict[str, float], Optional[datetime], str]:
        """Cached table if there is a usable one, otherwise the defaults."""
        if self._cache is not None:
            try:
                raw = self._cache.get(self._cache_key)
            except LocalCacheError as e:
                logger.warning("rate_cache_unreadable", error=str(e))
                raw = None

            if raw:
                try:
                    cached = CachedRates.model_validate(raw)
                except ValidationError as e:
                    logger.warning("rate_cache_invalid", error=str(e))
                else:
                    if self._is_pivoted(cached.rates):
                        return dict(cached.rates), cached.last_updated, "cache"
                    logger.warning("rate_cache_invalid", error=f"not relative to {self._pivot}")

        return dict(self._default_rates), None, "defaults"

    def _is_pivoted(self, table: Mapping[str, float]) -> bool:
        """The pivot's own rate must be 1."""
        return abs(table.get(self._pivot, 0.0) - 1.0) < 1e-9

    @property
    def rates(self) -> dict[str, float]:
        return dict(self._rates)

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_updated

    @property
    def source(self) -> str:
        """Where the current table came from: 'defaults', 'cache' or 'refresh'."""
        return self._source

    @property
    def is_updating(self) -> bool:
        return self._is_updating

    def get_rates(self) -> tuple[dict[str, float], Optional[datetime]]:
        """Return (table, last_updated); last_updated is None for the defaults."""
        return dict(self._rates), self._last_updated

    @property
    def pivot_currency(self) -> str:
        return self._pivot

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        """
        Convert with the table that is current at call time.

        A missing rate leaves the amount unconverted and is reported as a
        rate_not_found audit event.
        """
        try:
            return convert_strict(amount, from_currency, to_currency, self._rates)
        except RateNotFoundError as e:
            self._audit_logger.log(
                AuditEventBuilder.rate_not_found(e.currency, from_currency, to_currency)
            )
            return amount

    __call__ = convert

    async def refresh(self) -> tuple[dict[str, float], datetime]:
        """
        Fetch a new table from the provider and make it current.

        Returns:
            (table, last_updated)

        Raises:
            RateRefreshError: Provider failed; the current table is kept
            RatePersistError: Table is in use but could not be cached
        """
        self._is_updating = True
        try:
            try:
                new_rates = await self._provider.fetch_rates()
            except RateRefreshError as e:
                self._audit_logger.log(AuditEventBuilder.rates_refresh_failed(str(e)))
                raise
            except Exception as e:
                self._audit_logger.log(AuditEventBuilder.rates_refresh_failed(str(e)))
                raise RateRefreshError(f"Rate provider failed: {e}") from e

            if not new_rates:
                self._audit_logger.log(
                    AuditEventBuilder.rates_refresh_failed("Provider returned an empty table")
                )
                raise RateRefreshError("Provider returned an empty table")
            if not self._is_pivoted(new_rates):
                message = f"Provider table is not relative to {self._pivot}"
                self._audit_logger.log(AuditEventBuilder.rates_refresh_failed(message))
                raise RateRefreshError(message)

            last_updated = datetime.now(timezone.utc)
            # Swap table and timestamp together
            self._rates, self._last_updated, self._source = (
                dict(new_rates), last_updated, "refresh"
            )

            self._write_cache(self._rates, last_updated)

            self._audit_logger.log(
                AuditEventBuilder.rates_refreshed(len(self._rates), last_updated)
            )
            return dict(self._rates), last_updated
        finally:
            self._is_updating = False

    def _write_cache(self, rates: dict[str, float], last_updated: datetime) -> None:
        if self._cache is None:
            return
        payload = CachedRates(rates=rates, last_updated=last_updated)
        try:
            self._cache.set(
                self._cache_key,
                payload.model_dump(mode="json", by_alias=True),
            )
        except LocalCacheError as e:
            self._audit_logger.log(AuditEventBuilder.rates_cache_failed(str(e)))
            raise RatePersistError(
                f"Could not save updated exchange rates: {e}",
                rates=dict(rates),
                last_updated=last_updated,
            ) from e
