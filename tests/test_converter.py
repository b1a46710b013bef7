"""Tests for currency conversion through the pivot currency."""

import itertools

import pytest

from tripbudget.models.catalog import DEFAULT_EXCHANGE_RATES
from tripbudget.services.rates import (
    RateNotFoundError,
    TableConverter,
    convert,
    convert_strict,
)


class TestConvert:
    """Tests for the pure conversion functions."""

    def test_same_currency_is_identity(self):
        """Test that converting to the same currency skips the table entirely."""
        assert convert(123.45, "XYZ", "XYZ", {}) == 123.45
        assert convert_strict(0.1, "EUR", "EUR", {"EUR": 1.0}) == 0.1

    def test_converts_through_pivot(self):
        """Test the pivot formula."""
        table = {"EUR": 1.0, "USD": 1.08, "THB": 39.5}
        assert convert(100, "USD", "EUR", table) == pytest.approx(100 / 1.08)
        assert convert(108, "USD", "THB", table) == pytest.approx(3950.0)

    def test_round_trip_returns_original(self):
        """Test that A -> B -> A gives back the amount for every pair."""
        currencies = sorted(DEFAULT_EXCHANGE_RATES)
        for a, b in itertools.permutations(currencies, 2):
            there = convert(250.0, a, b, DEFAULT_EXCHANGE_RATES)
            back = convert(there, b, a, DEFAULT_EXCHANGE_RATES)
            assert back == pytest.approx(250.0, rel=1e-9)

    def test_strict_raises_for_missing_rate(self):
        """Test that convert_strict reports the missing currency."""
        with pytest.raises(RateNotFoundError) as exc_info:
            convert_strict(10, "EUR", "CHF", {"EUR": 1.0})
        assert exc_info.value.currency == "CHF"

    def test_zero_rate_counts_as_missing(self):
        """Test that an unusable rate is treated like a missing one."""
        with pytest.raises(RateNotFoundError):
            convert_strict(10, "EUR", "USD", {"EUR": 1.0, "USD": 0})

    def test_missing_rate_passes_amount_through(self):
        """Test that convert degrades to the unconverted amount."""
        assert convert(42.0, "CHF", "EUR", {"EUR": 1.0}) == 42.0

    def test_does_not_modify_table(self):
        """Test that conversion has no side effects on the table."""
        table = {"EUR": 1.0, "USD": 1.08}
        convert(10, "EUR", "USD", table)
        convert(10, "EUR", "GBP", table)
        assert table == {"EUR": 1.0, "USD": 1.08}


class TestTableConverter:
    """Tests for a converter bound to one table."""

    def test_callable_with_bound_table(self, converter):
        """Test that the converter uses its own table."""
        assert converter(108, "USD", "EUR") == pytest.approx(100.0)

    def test_table_is_copied(self):
        """Test that later edits to the source dict do not leak in."""
        source = {"EUR": 1.0, "USD": 1.08}
        bound = TableConverter(source)
        source["USD"] = 2.0
        assert bound(108, "USD", "EUR") == pytest.approx(100.0)

    def test_can_convert(self, converter):
        """Test rate availability checks."""
        assert converter.can_convert("USD") is True
        assert converter.can_convert("CHF") is False
