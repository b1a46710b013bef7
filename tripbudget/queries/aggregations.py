"""
Trip Aggregations

DESIGN DECISION: Aggregations are DETERMINISTIC and recomputed on every call.
There is no caching layer: rates can change under a trip at any time and
expense lists are small, so a fresh pass is both correct and cheap.

Every amount is converted into the trip's main currency before it is summed.
The converter degrades on unknown currencies (amount passed through, warning
logged), so none of these functions fail on a stale currency.

Calendar days: a naive datetime is already local calendar time; an aware
datetime is moved into the reporting timezone (host local zone when none is
given) before its date is taken.
"""

import math
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Sequence

from tripbudget.models.stats import (
    BudgetStatus,
    CategoryBudgetUsage,
    CategorySpend,
    DailyBurn,
    SpendingTrend,
    TrendPoint,
    TripSummary,
    TripTotals,
)
from tripbudget.models.trip import Category, Expense, Trip, resolve_category
from tripbudget.services.rates.converter import Converter


DEFAULT_WARNING_PCT = 75.0


def local_day(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of a moment in the reporting timezone."""
    if moment.tzinfo is None:
        return moment.date()
    # astimezone(None) means the host's local zone
    return moment.astimezone(tz).date()


def _aligned_now(reference: datetime, now: Optional[datetime]) -> datetime:
    """`now` made comparable with `reference` (both naive or both aware)."""
    if now is None:
        return datetime.now(reference.tzinfo) if reference.tzinfo else datetime.now()
    if reference.tzinfo is None and now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    if reference.tzinfo is not None and now.tzinfo is None:
        return now.astimezone()
    return now


def _in_main_currency(trip: Trip, expense: Expense, converter: Converter) -> float:
    return converter(expense.amount, expense.currency, trip.main_currency)


def _spent_by_category(trip: Trip, converter: Converter) -> dict[str, float]:
    """Converted spend per category name, in order of first appearance."""
    spending: dict[str, float] = {}
    for expense in trip.expenses:
        amount = _in_main_currency(trip, expense, converter)
        spending[expense.category] = spending.get(expense.category, 0.0) + amount
    return spending


# =============================================================================
# QUERIES
# =============================================================================

def total_spent(trip: Trip, converter: Converter) -> float:
    return sum(_in_main_currency(trip, e, converter) for e in trip.expenses)


def trip_totals(trip: Trip, converter: Converter) -> TripTotals:
    """
    Spend, remaining budget and progress in the trip's main currency.

    Remaining goes negative and progress exceeds 100 once the trip is over
    budget; clamping is left to whoever displays the numbers.
    """
    spent = total_spent(trip, converter)
    budget = trip.total_budget
    return TripTotals(
        currency=trip.main_currency,
        total_spent=spent,
        total_budget=budget,
        remaining=budget - spent,
        progress_pct=(spent / budget * 100) if budget > 0 else 0.0,
    )


def daily_burn(
    trip: Trip,
    converter: Converter,
    now: Optional[datetime] = None,
) -> DailyBurn:
    """
    Average spend per elapsed day.

    Elapsed time is measured from the start date to `now` clamped into the
    trip window, rounded up to whole days, and never less than one day.
    """
    start, end = trip.start_date, trip.end_date
    current = _aligned_now(start, now)
    clamped = min(max(current, start), end)

    days = math.ceil((clamped - start) / timedelta(days=1))
    days = max(1, days)
    return DailyBurn(
        days_elapsed=days,
        daily_average=total_spent(trip, converter) / days,
    )


def category_breakdown(
    trip: Trip,
    converter: Converter,
    categories: Sequence[Category] = (),
) -> list[CategorySpend]:
    """
    Spend per category with its share of the total, largest first.

    Category names with no matching category are kept, flagged stale and
    shown with the generic icon.
    """
    spending = _spent_by_category(trip, converter)
    grand_total = sum(spending.values())
    slices = []
    for name, amount in spending.items():
        ref = resolve_category(categories, name)
        slices.append(CategorySpend(
            name=name,
            icon=ref.icon,
            amount=amount,
            percentage=(amount / grand_total * 100) if grand_total > 0 else 0.0,
            is_stale=ref.is_stale,
        ))
    # sorted() is stable: ties keep first-appearance order
    return sorted(slices, key=lambda s: s.amount, reverse=True)


def budget_status(percentage: float, warning_pct: float = DEFAULT_WARNING_PCT) -> BudgetStatus:
    if percentage >= 100:
        return BudgetStatus.OVER
    if percentage >= warning_pct:
        return BudgetStatus.WARNING
    return BudgetStatus.NORMAL


def category_budget_usage(
    trip: Trip,
    converter: Converter,
    categories: Sequence[Category] = (),
    warning_pct: float = DEFAULT_WARNING_PCT,
) -> list[CategoryBudgetUsage]:
    """Spend against every declared category budget, most used first."""
    spending = _spent_by_category(trip, converter)

    usages = []
    for budget in trip.category_budgets:
        spent = spending.get(budget.category_name, 0.0)
        percentage = (spent / budget.amount * 100) if budget.amount > 0 else 0.0
        usages.append(CategoryBudgetUsage(
            category_name=budget.category_name,
            icon=resolve_category(categories, budget.category_name).icon,
            budget=budget.amount,
            spent=spent,
            percentage=percentage,
            status=budget_status(percentage, warning_pct),
        ))
    return sorted(usages, key=lambda u: u.percentage, reverse=True)


def spending_trend(
    trip: Trip,
    converter: Converter,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> SpendingTrend:
    """
    Cumulative spend, one point per calendar day.

    Days run from the start date to the earlier of today and the end date,
    inclusive. Expenses dated outside that window do not appear on the
    curve. The ideal daily burn spreads the total budget over the days
    produced so far (at least one).
    """
    first_day = local_day(trip.start_date, tz)
    last_day = local_day(trip.end_date, tz)
    if today is None:
        today = datetime.now(tz).date()
    last_day = min(today, last_day)

    per_day: dict[date, float] = {}
    for expense in trip.expenses:
        day = local_day(expense.date, tz)
        per_day[day] = per_day.get(day, 0.0) + _in_main_currency(trip, expense, converter)

    points: list[TrendPoint] = []
    running = 0.0
    day = first_day
    while day <= last_day:
        spent = per_day.get(day, 0.0)
        running += spent
        points.append(TrendPoint(day=day, spent=spent, cumulative=running))
        day += timedelta(days=1)

    total_days = max(1, len(points))
    return SpendingTrend(
        points=points,
        ideal_daily_burn=trip.total_budget / total_days,
        total_days=total_days,
    )


# =============================================================================
# FACADE
# =============================================================================

class TripAnalytics:
    """
    All trip queries bound to one converter, category list and calendar.

    Bind a fresh instance (or pass a converter that reads the live rate
    table) whenever the rates or categories change.
    """

    def __init__(
        self,
        converter: Converter,
        categories: Sequence[Category] = (),
        warning_pct: float = DEFAULT_WARNING_PCT,
        tz: Optional[tzinfo] = None,
    ):
        self._converter = converter
        self._categories = list(categories)
        self._warning_pct = warning_pct
        self._tz = tz

    def totals(self, trip: Trip) -> TripTotals:
        return trip_totals(trip, self._converter)

    def burn(self, trip: Trip, now: Optional[datetime] = None) -> DailyBurn:
        return daily_burn(trip, self._converter, now=now)

    def breakdown(self, trip: Trip) -> list[CategorySpend]:
        return category_breakdown(trip, self._converter, self._categories)

    def budgets(self, trip: Trip) -> list[CategoryBudgetUsage]:
        return category_budget_usage(
            trip, self._converter, self._categories, self._warning_pct
        )

    def trend(self, trip: Trip, today: Optional[date] = None) -> SpendingTrend:
        return spending_trend(trip, self._converter, today=today, tz=self._tz)

    def summarize(
        self,
        trip: Trip,
        now: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> TripSummary:
        """
        Every query for one trip. Budget usage is only reported when the
        trip has category budgets enabled.
        """
        return TripSummary(
            trip_id=trip.id,
            totals=self.totals(trip),
            burn=self.burn(trip, now=now),
            categories=self.breakdown(trip),
            budgets=self.budgets(trip) if trip.enable_category_budgets else [],
            trend=self.trend(trip, today=today),
        )
