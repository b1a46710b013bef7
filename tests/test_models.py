"""
Tests for Trip Budget

Test strategy:
1. Unit tests for individual components (models, store, aggregations)
2. Integration tests for flows (with in-memory and mocked remote stores)
3. No real network calls in tests
"""

import pytest
from datetime import datetime
from pydantic import ValidationError

from tripbudget.models.catalog import (
    CURRENCY_TO_COUNTRY,
    DEFAULT_CATEGORIES,
    DEFAULT_EXCHANGE_RATES,
    is_default_category,
    suggest_currencies,
)
from tripbudget.models.trip import (
    UNKNOWN_CATEGORY_ICON,
    AccountSnapshot,
    Category,
    CategoryBudget,
    Expense,
    ExpenseDraft,
    Trip,
    TripDraft,
    ValidationIssue,
    ValidationResult,
)
from tripbudget.models.audit import (
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def make_trip(**overrides) -> Trip:
    fields = dict(
        id="t1",
        name="Thailandia",
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 20),
        total_budget=2000,
        main_currency="EUR",
        preferred_currencies=["EUR", "THB"],
    )
    fields.update(overrides)
    return Trip(**fields)


class TestEntityModels:
    """Tests for the entity Pydantic models."""

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from category names."""
        category = Category(id="custom-cat-1", name="  Musei  ", icon="🏛️")
        assert category.name == "Musei"

    def test_entities_are_frozen(self):
        """Test that stored entities cannot be edited in place."""
        category = Category(id="cat-1", name="Cibo", icon="🍔")
        with pytest.raises(ValidationError):
            category.name = "Food"

    def test_expense_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (0, -5):
            with pytest.raises(ValueError):
                Expense(
                    id="e1",
                    amount=amount,
                    currency="EUR",
                    category="Cibo",
                    date=datetime(2024, 1, 2),
                )

    def test_expense_currency_is_upper_cased(self):
        """Test that currency codes are normalized."""
        expense = Expense(
            id="e1", amount=10, currency="usd", category="Cibo",
            date=datetime(2024, 1, 2),
        )
        assert expense.currency == "USD"

    def test_expense_draft_requires_description(self):
        """Test that a new expense needs a description."""
        with pytest.raises(ValidationError):
            ExpenseDraft(
                amount=10, currency="EUR", category="Cibo",
                description="", date=datetime(2024, 1, 2),
            )


class TestTripModel:
    """Tests for trip-level invariants."""

    def test_main_currency_added_to_preferred(self):
        """Test that the main currency is always a preferred currency."""
        trip = make_trip(main_currency="JPY", preferred_currencies=["EUR"])
        assert trip.preferred_currencies == ["JPY", "EUR"]

    def test_preferred_currencies_deduplicated(self):
        """Test that preferred currencies are upper-cased and unique."""
        trip = make_trip(preferred_currencies=["eur", "THB", "thb"])
        assert trip.preferred_currencies == ["EUR", "THB"]

    def test_end_before_start_rejected(self):
        """Test that a trip cannot end before it starts."""
        with pytest.raises(ValidationError, match="End date cannot be before start date"):
            make_trip(end_date=datetime(2023, 12, 31))

    def test_total_budget_must_be_positive(self):
        """Test that a zero budget is rejected."""
        with pytest.raises(ValidationError):
            make_trip(total_budget=0)

    def test_category_budgets_pruned_and_unique(self):
        """Test that non-positive budgets are dropped and the last duplicate wins."""
        trip = make_trip(category_budgets=[
            CategoryBudget(category_name="Cibo", amount=100),
            CategoryBudget(category_name="Alloggio", amount=0),
            CategoryBudget(category_name="Cibo", amount=250),
            CategoryBudget(category_name="Visti", amount=-10),
        ])
        assert [(b.category_name, b.amount) for b in trip.category_budgets] == [("Cibo", 250)]
        assert trip.total_allocated_budget == 250

    def test_sorted_expenses_newest_first(self):
        """Test expense listing order."""
        older = Expense(id="e1", amount=5, currency="EUR", category="Cibo",
                        date=datetime(2024, 1, 2))
        newer = Expense(id="e2", amount=5, currency="EUR", category="Cibo",
                        date=datetime(2024, 1, 5))
        trip = make_trip(expenses=[older, newer])
        assert [e.id for e in trip.sorted_expenses()] == ["e2", "e1"]

    def test_trip_draft_has_no_expenses(self):
        """Test that drafts carry no id or expenses."""
        draft = TripDraft(
            name="Vietnam", start_date=datetime(2024, 5, 1),
            end_date=datetime(2024, 5, 3), total_budget=500, main_currency="VND",
        )
        assert "expenses" not in TripDraft.model_fields
        assert draft.preferred_currencies == ["VND"]


class TestSnapshotWireFormat:
    """Tests for the camelCase JSON blob stored remotely."""

    def test_parses_camel_case_payload(self):
        """Test that a remote payload is read with camelCase keys."""
        payload = {
            "trips": [{
                "id": "1700000000000",
                "name": "Giappone",
                "startDate": "2024-03-01T00:00:00",
                "endDate": "2024-03-10T00:00:00",
                "totalBudget": 1500,
                "countries": ["Giappone"],
                "mainCurrency": "EUR",
                "preferredCurrencies": ["EUR", "JPY"],
                "expenses": [{
                    "id": "1700000000001",
                    "amount": 1200,
                    "currency": "JPY",
                    "category": "Cibo",
                    "description": "Ramen",
                    "date": "2024-03-02T12:30:00",
                    "country": "Giappone",
                }],
                "frequentExpenses": [],
                "enableCategoryBudgets": True,
                "categoryBudgets": [{"categoryName": "Cibo", "amount": 300}],
            }],
            "categories": [{"id": "cat-1", "name": "Cibo", "icon": "🍔"}],
        }
        snapshot = AccountSnapshot.model_validate(payload)
        trip = snapshot.trips[0]
        assert trip.total_budget == 1500
        assert trip.expenses[0].description == "Ramen"
        assert trip.category_budgets[0].category_name == "Cibo"

    def test_to_wire_uses_camel_case(self):
        """Test that serialization produces the remote field names."""
        snapshot = AccountSnapshot(trips=[make_trip()], categories=list(DEFAULT_CATEGORIES))
        wire = snapshot.to_wire()
        trip = wire["trips"][0]
        assert "startDate" in trip
        assert "mainCurrency" in trip
        assert "enableCategoryBudgets" in trip
        assert "start_date" not in trip

    def test_resolve_category_marks_stale_names(self):
        """Test lookup of categories by name."""
        snapshot = AccountSnapshot(categories=list(DEFAULT_CATEGORIES))
        assert snapshot.resolve_category("Cibo").category.id == "cat-1"
        stale = snapshot.resolve_category("Vecchia")
        assert stale.is_stale is True
        assert stale.category is None

    def test_resolved_category_icon(self):
        """Test that a resolved name carries its icon and a stale one the generic icon."""
        snapshot = AccountSnapshot(categories=list(DEFAULT_CATEGORIES))
        assert snapshot.resolve_category("Cibo").icon == "🍔"
        assert snapshot.resolve_category("Vecchia").icon == UNKNOWN_CATEGORY_ICON


class TestCatalog:
    """Tests for the built-in catalog data."""

    def test_default_categories_have_stable_ids(self):
        """Test the eight default categories."""
        assert [c.id for c in DEFAULT_CATEGORIES] == [f"cat-{i}" for i in range(1, 9)]
        assert DEFAULT_CATEGORIES[-1].name == "Varie"
        assert is_default_category("cat-8") is True
        assert is_default_category("custom-cat-1") is False

    def test_currency_to_country(self):
        """Test the inverse country map."""
        assert CURRENCY_TO_COUNTRY["THB"] == "Thailandia"
        assert CURRENCY_TO_COUNTRY["EUR"] == "Area Euro"

    def test_default_rates_use_euro_pivot(self):
        """Test that the bundled table is relative to EUR."""
        assert DEFAULT_EXCHANGE_RATES["EUR"] == 1.0
        assert DEFAULT_EXCHANGE_RATES["USD"] == 1.08

    def test_suggest_currencies(self):
        """Test currency suggestions from destination countries."""
        suggested = suggest_currencies(["Thailandia", "Vietnam", "Atlantide"], "EUR")
        assert suggested == ["EUR", "THB", "VND"]

    def test_suggest_currencies_keeps_preferred(self):
        """Test that already-preferred currencies are kept, without duplicates."""
        suggested = suggest_currencies(["Thailandia"], "EUR", preferred=["USD", "THB"])
        assert suggested == ["EUR", "THB", "USD"]


class TestAuditModels:
    """Tests for audit event models."""

    def test_persist_failed_is_error(self):
        """Test AuditEventBuilder.persist_failed."""
        event = AuditEventBuilder.persist_failed("abc123", revision=4, error_message="boom")
        assert event.event_type == AuditEventType.SNAPSHOT_PERSIST_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.details["revision"] == 4
        assert event.error_message == "boom"

    def test_entity_mutated(self):
        """Test AuditEventBuilder.entity_mutated."""
        event = AuditEventBuilder.entity_mutated("abc123", "add_trip", revision=2)
        assert event.event_type == AuditEventType.ENTITY_MUTATED
        assert event.account_key_hash == "abc123"
        assert event.details == {"operation": "add_trip", "revision": 2}

    def test_to_log_dict(self):
        """Test the structured log representation."""
        event = AuditEventBuilder.rates_refresh_failed("offline")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "rates_refresh_failed"
        assert log_dict["severity"] == "error"
        assert log_dict["error_message"] == "offline"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(issues=[
            ValidationIssue(
                entity="category",
                issue_type="duplicate_name",
                message="Category name 'Cibo' is used 2 times",
                severity="error",
            ),
        ])
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(issues=[
            ValidationIssue(
                entity="expense",
                entity_id="e1",
                issue_type="stale_reference",
                message="Category 'Vecchia' no longer exists",
                severity="warning",
            ),
        ])
        assert result.has_errors is False
        assert result.error_count == 0
        assert len(result.warnings) == 1

    def test_severity_is_restricted(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValidationError):
            ValidationIssue(entity="trip", issue_type="x", message="x", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
