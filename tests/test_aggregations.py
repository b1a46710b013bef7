"""Tests for the trip aggregation queries."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tripbudget.models.catalog import DEFAULT_CATEGORIES
from tripbudget.models.stats import BudgetStatus
from tripbudget.models.trip import UNKNOWN_CATEGORY_ICON, CategoryBudget, Expense, Trip
from tripbudget.queries import (
    TripAnalytics,
    budget_status,
    category_breakdown,
    category_budget_usage,
    daily_burn,
    local_day,
    spending_trend,
    trip_totals,
)
from tripbudget.services.rates import TableConverter


def expense(expense_id: str, amount: float, currency: str = "EUR",
            category: str = "Cibo", when: datetime = datetime(2024, 3, 2, 12)) -> Expense:
    return Expense(
        id=expense_id, amount=amount, currency=currency,
        category=category, description="x", date=when,
    )


def make_trip(expenses=(), **overrides) -> Trip:
    fields = dict(
        id="t1",
        name="Stati Uniti",
        start_date=datetime(2024, 3, 1),
        end_date=datetime(2024, 3, 10),
        total_budget=1000,
        main_currency="EUR",
        preferred_currencies=["EUR", "USD"],
        expenses=list(expenses),
    )
    fields.update(overrides)
    return Trip(**fields)


@pytest.fixture
def eur_usd() -> TableConverter:
    return TableConverter({"EUR": 1.0, "USD": 1.08})


class TestTripTotals:
    """Tests for total spent, remaining and progress."""

    def test_converts_into_main_currency(self, eur_usd):
        """Test the headline totals across currencies."""
        trip = make_trip([expense("e1", 100, "USD"), expense("e2", 50, "EUR")])
        totals = trip_totals(trip, eur_usd)
        assert totals.total_spent == pytest.approx(50 + 100 / 1.08)
        assert totals.total_spent == pytest.approx(142.59, abs=0.01)
        assert totals.currency == "EUR"

    def test_over_budget_is_not_clamped(self, eur_usd):
        """Test negative remaining and progress above 100."""
        trip = make_trip([expense("e1", 700), expense("e2", 500)])
        totals = trip_totals(trip, eur_usd)
        assert totals.remaining == pytest.approx(-200)
        assert totals.progress_pct == pytest.approx(120)

    def test_unknown_currency_passes_through(self, eur_usd):
        """Test that a currency without a rate never breaks the totals."""
        trip = make_trip([expense("e1", 30, "CHF")], preferred_currencies=["EUR", "CHF"])
        assert trip_totals(trip, eur_usd).total_spent == 30

    def test_empty_trip(self, eur_usd):
        """Test a trip with no expenses."""
        totals = trip_totals(make_trip(), eur_usd)
        assert totals.total_spent == 0
        assert totals.remaining == 1000
        assert totals.progress_pct == 0


class TestDailyBurn:
    """Tests for the average spend per elapsed day."""

    def test_mid_trip(self, eur_usd):
        """Test elapsed days rounded up."""
        trip = make_trip([expense("e1", 90)])
        burn = daily_burn(trip, eur_usd, now=datetime(2024, 3, 3, 6))
        assert burn.days_elapsed == 3
        assert burn.daily_average == pytest.approx(30)

    def test_before_start_counts_one_day(self, eur_usd):
        """Test the one-day minimum."""
        trip = make_trip([expense("e1", 90)])
        burn = daily_burn(trip, eur_usd, now=datetime(2024, 2, 1))
        assert burn.days_elapsed == 1
        assert burn.daily_average == pytest.approx(90)

    def test_after_end_uses_trip_length(self, eur_usd):
        """Test that now is clamped to the end date."""
        trip = make_trip([expense("e1", 90)])
        burn = daily_burn(trip, eur_usd, now=datetime(2024, 6, 1))
        assert burn.days_elapsed == 9
        assert burn.daily_average == pytest.approx(10)

    def test_single_day_trip(self, eur_usd):
        """Test a trip that starts and ends at the same moment."""
        moment = datetime(2024, 3, 1)
        trip = make_trip([expense("e1", 40, when=moment)], end_date=moment)
        assert daily_burn(trip, eur_usd, now=datetime(2024, 3, 5)).days_elapsed == 1

    def test_aware_dates(self, eur_usd):
        """Test that aware trip dates work with a naive-free now."""
        trip = make_trip(
            start_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
            end_date=datetime(2024, 3, 10, tzinfo=timezone.utc),
        )
        burn = daily_burn(trip, eur_usd, now=datetime(2024, 3, 2, 12, tzinfo=timezone.utc))
        assert burn.days_elapsed == 2


class TestCategoryBreakdown:
    """Tests for spend per category."""

    def test_percentages_and_order(self, eur_usd):
        """Test shares of the total, largest first."""
        trip = make_trip([
            expense("e1", 30, category="Trasporti"),
            expense("e2", 60, category="Cibo"),
            expense("e3", 10, category="Trasporti"),
        ])
        slices = category_breakdown(trip, eur_usd, DEFAULT_CATEGORIES)
        assert [s.name for s in slices] == ["Cibo", "Trasporti"]
        assert slices[0].percentage == pytest.approx(60)
        assert slices[1].amount == pytest.approx(40)
        assert slices[0].icon == "🍔"

    def test_single_category_is_everything(self, eur_usd):
        """Test the end-to-end breakdown: one category holds all spend."""
        trip = make_trip([expense("e1", 100, "USD"), expense("e2", 50)])
        slices = category_breakdown(trip, eur_usd, DEFAULT_CATEGORIES)
        assert len(slices) == 1
        assert slices[0].percentage == pytest.approx(100)

    def test_ties_keep_first_appearance(self, eur_usd):
        """Test that the sort is stable."""
        trip = make_trip([
            expense("e1", 10, category="Visti"),
            expense("e2", 10, category="Cibo"),
        ])
        slices = category_breakdown(trip, eur_usd, DEFAULT_CATEGORIES)
        assert [s.name for s in slices] == ["Visti", "Cibo"]

    def test_stale_category_flagged(self, eur_usd):
        """Test that names with no category are visible as stale."""
        trip = make_trip([expense("e1", 10, category="Vecchia")])
        slices = category_breakdown(trip, eur_usd, DEFAULT_CATEGORIES)
        assert slices[0].is_stale is True
        assert slices[0].icon == UNKNOWN_CATEGORY_ICON

    def test_known_category_icon(self, eur_usd):
        """Test that a resolved category brings its own icon."""
        trip = make_trip([expense("e1", 10, category="Alloggio")])
        slices = category_breakdown(trip, eur_usd, DEFAULT_CATEGORIES)
        assert slices[0].icon == "🏠"
        assert slices[0].is_stale is False

    def test_empty_trip(self, eur_usd):
        """Test that no expenses means no slices."""
        assert category_breakdown(make_trip(), eur_usd) == []


class TestCategoryBudgets:
    """Tests for spend against category budgets."""

    def test_status_tiers(self):
        """Test the normal / warning / over thresholds."""
        assert budget_status(74.99) == BudgetStatus.NORMAL
        assert budget_status(75) == BudgetStatus.WARNING
        assert budget_status(99.9) == BudgetStatus.WARNING
        assert budget_status(100) == BudgetStatus.OVER
        assert budget_status(80, warning_pct=90) == BudgetStatus.NORMAL

    def test_usage_sorted_by_percentage(self, eur_usd):
        """Test budget usage, highest percentage first."""
        trip = make_trip(
            [
                expense("e1", 50, category="Cibo"),
                expense("e2", 108, "USD", category="Alloggio"),
            ],
            enable_category_budgets=True,
            category_budgets=[
                CategoryBudget(category_name="Cibo", amount=200),
                CategoryBudget(category_name="Alloggio", amount=100),
                CategoryBudget(category_name="Visti", amount=80),
            ],
        )
        usage = category_budget_usage(trip, eur_usd, DEFAULT_CATEGORIES)

        assert [u.category_name for u in usage] == ["Alloggio", "Cibo", "Visti"]
        assert usage[0].spent == pytest.approx(100)
        assert usage[0].status == BudgetStatus.OVER
        assert usage[1].percentage == pytest.approx(25)
        assert usage[1].remaining == pytest.approx(150)
        assert usage[2].spent == 0
        assert usage[2].status == BudgetStatus.NORMAL


class TestSpendingTrend:
    """Tests for the cumulative spend curve."""

    def test_one_point_per_day_until_today(self, eur_usd):
        """Test the day window stops at today."""
        trip = make_trip([expense("e1", 20, when=datetime(2024, 3, 2, 9))])
        trend = spending_trend(trip, eur_usd, today=date(2024, 3, 4))
        assert [p.day for p in trend.points] == [
            date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3), date(2024, 3, 4),
        ]
        assert [p.cumulative for p in trend.points] == [0, 20, 20, 20]
        assert trend.total_days == 4
        assert trend.ideal_daily_burn == pytest.approx(250)

    def test_window_stops_at_end_date(self, eur_usd):
        """Test that a finished trip is charted to its last day."""
        trip = make_trip()
        trend = spending_trend(trip, eur_usd, today=date(2025, 1, 1))
        assert trend.points[-1].day == date(2024, 3, 10)
        assert len(trend.points) == 10
        assert trend.ideal_daily_burn == pytest.approx(100)

    def test_last_point_equals_total(self, eur_usd):
        """Test that the curve ends at total spent for expenses in the window."""
        expenses = [
            expense("e1", 100, "USD", when=datetime(2024, 3, 1, 10)),
            expense("e2", 50, when=datetime(2024, 3, 2, 18)),
            expense("e3", 12.5, when=datetime(2024, 3, 2, 19)),
        ]
        trip = make_trip(expenses)
        trend = spending_trend(trip, eur_usd, today=date(2024, 3, 10))
        assert trend.final_cumulative == pytest.approx(trip_totals(trip, eur_usd).total_spent)
        assert trend.points[1].spent == pytest.approx(62.5)

    def test_future_trip_has_no_points(self, eur_usd):
        """Test a trip that has not started yet."""
        trend = spending_trend(make_trip(), eur_usd, today=date(2024, 1, 1))
        assert trend.points == []
        assert trend.total_days == 1
        assert trend.ideal_daily_burn == 1000

    def test_aware_dates_bucketed_in_reporting_zone(self, eur_usd):
        """Test day bucketing of an aware timestamp."""
        late_utc = datetime(2024, 3, 2, 23, 30, tzinfo=timezone.utc)
        plus_two = timezone(timedelta(hours=2))
        assert local_day(late_utc, plus_two) == date(2024, 3, 3)
        assert local_day(datetime(2024, 3, 2, 23, 30)) == date(2024, 3, 2)

        trip = make_trip([expense("e1", 10, when=late_utc)])
        trend = spending_trend(trip, eur_usd, today=date(2024, 3, 4), tz=plus_two)
        assert trend.points[2].day == date(2024, 3, 3)
        assert trend.points[2].spent == 10


class TestTripAnalytics:
    """Tests for the bound query facade."""

    def test_summary(self, eur_usd):
        """Test that the summary combines every query."""
        trip = make_trip(
            [expense("e1", 100, "USD"), expense("e2", 50, when=datetime(2024, 3, 3))],
            category_budgets=[CategoryBudget(category_name="Cibo", amount=100)],
        )
        analytics = TripAnalytics(eur_usd, DEFAULT_CATEGORIES)

        summary = analytics.summarize(trip, now=datetime(2024, 3, 5), today=date(2024, 3, 5))

        assert summary.trip_id == "t1"
        assert summary.totals.total_spent == pytest.approx(142.59, abs=0.01)
        assert summary.burn.days_elapsed == 4
        assert summary.categories[0].name == "Cibo"
        assert summary.budgets == []
        assert summary.trend.final_cumulative == pytest.approx(summary.totals.total_spent)

    def test_summary_includes_budgets_when_enabled(self, eur_usd):
        """Test budget usage is reported for trips with budgets enabled."""
        trip = make_trip(
            [expense("e1", 80)],
            enable_category_budgets=True,
            category_budgets=[CategoryBudget(category_name="Cibo", amount=100)],
        )
        summary = TripAnalytics(eur_usd, DEFAULT_CATEGORIES).summarize(
            trip, now=datetime(2024, 3, 5), today=date(2024, 3, 5)
        )
        assert summary.budgets[0].status == BudgetStatus.WARNING
