"""Tests for the two-stage snapshot validator."""

from datetime import datetime

from tripbudget.models.catalog import DEFAULT_CATEGORIES, default_categories
from tripbudget.models.trip import (
    AccountSnapshot,
    Category,
    CategoryBudget,
    Expense,
    FrequentExpense,
    Trip,
)
from tripbudget.validation import SnapshotValidator


def make_trip(trip_id: str = "t1", **overrides) -> Trip:
    fields = dict(
        id=trip_id,
        name="Vietnam",
        start_date=datetime(2024, 4, 1),
        end_date=datetime(2024, 4, 14),
        total_budget=1200,
        main_currency="EUR",
        preferred_currencies=["EUR", "VND"],
    )
    fields.update(overrides)
    return Trip(**fields)


def issue_types(result) -> list[str]:
    return [issue.issue_type for issue in result.issues]


class TestStructuralChecks:
    """Stage 1: invariant checks."""

    def test_clean_snapshot(self):
        """Test that a fresh account has no issues."""
        result = SnapshotValidator().validate(
            AccountSnapshot(trips=[make_trip()], categories=default_categories())
        )
        assert result.issues == []
        assert result.is_valid is True

    def test_duplicate_category_name(self):
        """Test that two categories with one name is an error."""
        categories = default_categories() + [Category(id="custom-cat-1", name="Cibo")]
        result = SnapshotValidator().validate(AccountSnapshot(categories=categories))
        assert "duplicate_name" in issue_types(result)
        assert result.has_errors is True

    def test_duplicate_ids(self):
        """Test duplicate trip and expense ids."""
        expense = Expense(
            id="e1", amount=10, currency="EUR", category="Cibo",
            date=datetime(2024, 4, 2),
        )
        trip = make_trip(expenses=[expense, expense])
        snapshot = AccountSnapshot(trips=[trip, trip], categories=default_categories())

        result = SnapshotValidator().validate(snapshot)

        entities = [(i.entity, i.issue_type) for i in result.issues]
        assert ("trip", "duplicate_id") in entities
        assert ("expense", "duplicate_id") in entities

    def test_missing_default_is_warning(self):
        """Test that a missing default category is reported, not fatal."""
        categories = [c for c in DEFAULT_CATEGORIES if c.id != "cat-3"]
        result = SnapshotValidator().validate(AccountSnapshot(categories=categories))
        assert issue_types(result) == ["missing_default"]
        assert result.is_valid is True
        assert result.issues[0].entity_id == "cat-3"


class TestReferentialChecks:
    """Stage 2: weak references and out-of-range records."""

    def test_stale_references(self):
        """Test expenses, budgets and templates with unknown category names."""
        trip = make_trip(
            expenses=[Expense(
                id="e1", amount=10, currency="EUR", category="Vecchia",
                date=datetime(2024, 4, 2),
            )],
            category_budgets=[CategoryBudget(category_name="Vecchia", amount=50)],
            frequent_expenses=[FrequentExpense(
                id="f1", name="Pho", category="Vecchia", amount=3,
            )],
        )
        result = SnapshotValidator().validate(
            AccountSnapshot(trips=[trip], categories=default_categories())
        )
        stale = [i.entity for i in result.issues if i.issue_type == "stale_reference"]
        assert stale == ["expense", "category_budget", "frequent_expense"]
        assert all(i.severity == "warning" for i in result.issues)

    def test_currency_no_longer_preferred(self):
        """Test that an expense in a dropped currency is only informational."""
        trip = make_trip(expenses=[Expense(
            id="e1", amount=10, currency="USD", category="Cibo",
            date=datetime(2024, 4, 2),
        )])
        result = SnapshotValidator().validate(
            AccountSnapshot(trips=[trip], categories=default_categories())
        )
        assert issue_types(result) == ["currency_not_preferred"]
        assert result.issues[0].severity == "info"

    def test_expense_outside_trip(self):
        """Test that out-of-window expenses are reported."""
        trip = make_trip(expenses=[Expense(
            id="e1", amount=10, currency="EUR", category="Cibo",
            date=datetime(2024, 5, 1),
        )])
        result = SnapshotValidator().validate(
            AccountSnapshot(trips=[trip], categories=default_categories())
        )
        assert issue_types(result) == ["outside_trip_dates"]
