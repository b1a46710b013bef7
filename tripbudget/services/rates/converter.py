"""
Currency Conversion

Every rate in a table is "units of currency per one unit of the pivot
currency" (EUR in the bundled table). Converting A -> B therefore goes
through the pivot:

    amount_in_pivot = amount / table[A]
    result          = amount_in_pivot * table[B]

No rounding happens here, so A -> B -> A returns the original amount up
to floating-point error. Rounding is a presentation concern.

DESIGN DECISION: Aggregations must never crash on a stale or unknown
currency. `convert` therefore degrades to returning the amount unconverted
and logs a warning; `convert_strict` raises for callers that want to know.
"""

from typing import Mapping, Optional, Protocol

import structlog


logger = structlog.get_logger(__name__)


RateTable = Mapping[str, float]


class RateError(Exception):
    """Base exception for exchange rate errors."""
    pass


class RateNotFoundError(RateError):
    """A currency needed for a conversion is missing from the rate table."""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"No exchange rate for {currency}")


class Converter(Protocol):
    """Anything that converts an amount between two currencies."""

    def __call__(self, amount: float, from_currency: str, to_currency: str) -> float:
        ...


def _rate(table: RateTable, currency: str) -> float:
    rate = table.get(currency)
    # A zero or negative rate is as unusable as a missing one
    if rate is None or rate <= 0:
        raise RateNotFoundError(currency)
    return float(rate)


def convert_strict(
    amount: float,
    from_currency: str,
    to_currency: str,
    table: RateTable,
) -> float:
    """
    Convert through the pivot currency.

    Raises:
        RateNotFoundError: If either currency has no usable rate
    """
    if from_currency == to_currency:
        return amount

    from_rate = _rate(table, from_currency)
    to_rate = _rate(table, to_currency)

    amount_in_pivot = amount / from_rate
    return amount_in_pivot * to_rate


def convert(
    amount: float,
    from_currency: str,
    to_currency: str,
    table: RateTable,
) -> float:
    """
    Convert through the pivot currency, passing the amount through unchanged
    (with a warning) when a rate is missing.
    """
    try:
        return convert_strict(amount, from_currency, to_currency, table)
    except RateNotFoundError as e:
        logger.warning(
            "rate_not_found",
            from_currency=from_currency,
            to_currency=to_currency,
            missing=e.currency,
        )
        return amount


class TableConverter:
    """
    A converter bound to one fixed rate table.

    Aggregations take any `Converter`; this one is handy in tests and for
    computing a whole report against a consistent snapshot of the rates.
    """

    def __init__(self, table: RateTable):
        self._table = dict(table)

    @property
    def table(self) -> dict[str, float]:
        return dict(self._table)

    def __call__(self, amount: float, from_currency: str, to_currency: str) -> float:
        return convert(amount, from_currency, to_currency, self._table)

    def can_convert(self, currency: str) -> bool:
        rate: Optional[float] = self._table.get(currency)
        return rate is not None and rate > 0
