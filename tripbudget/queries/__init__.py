"""Aggregation queries over a single trip."""

from tripbudget.queries.aggregations import (
    DEFAULT_WARNING_PCT,
    TripAnalytics,
    budget_status,
    category_breakdown,
    category_budget_usage,
    daily_burn,
    local_day,
    spending_trend,
    total_spent,
    trip_totals,
)

__all__ = [
    "DEFAULT_WARNING_PCT",
    "TripAnalytics",
    "budget_status",
    "category_breakdown",
    "category_budget_usage",
    "daily_burn",
    "local_day",
    "spending_trend",
    "total_spent",
    "trip_totals",
]
