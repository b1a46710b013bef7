"""
Exchange Rate Providers

A provider is the replaceable "fetch the latest rates" call behind
`RateStore.refresh()`. Acquiring real market rates is out of scope; the
bundled provider simulates a network round trip and returns the bundled
table, so the refresh path (latency, caching, timestamps) is still real.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from tripbudget.models.catalog import DEFAULT_EXCHANGE_RATES


class RateProviderInterface(ABC):
    """Source of a fresh rate table relative to the pivot currency."""

    @abstractmethod
    async def fetch_rates(self) -> dict[str, float]:
        """
        Fetch a complete rate table.

        Raises:
            RateRefreshError: If no table could be obtained
        """
        pass


class StaticRateProvider(RateProviderInterface):
    """Returns a fixed table after an artificial delay."""

    def __init__(
        self,
        rates: Optional[Mapping[str, float]] = None,
        delay_seconds: float = 0.5,
    ):
        self._rates = dict(rates if rates is not None else DEFAULT_EXCHANGE_RATES)
        self._delay = delay_seconds

    async def fetch_rates(self) -> dict[str, float]:
        if self._delay:
            await asyncio.sleep(self._delay)
        return dict(self._rates)
