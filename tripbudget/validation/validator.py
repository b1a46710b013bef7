"""
Two-Stage Snapshot Validation

DESIGN DECISION: A loaded snapshot is inspected in two distinct stages:

STAGE 1 - STRUCTURAL:
- Duplicate category ids or names
- Duplicate trip ids, duplicate expense ids inside a trip
- Main currency missing from the preferred currencies
- Default categories missing

STAGE 2 - REFERENTIAL:
- Expenses, budgets and templates pointing at category names that no
  longer exist (stale references)
- Expenses in a currency that is no longer preferred
- Expenses dated outside their trip

Stage 1 problems are errors: the entity store's invariants do not hold.
Stage 2 problems are warnings or info: the data is usable, just untidy.

IMPORTANT: Validation NEVER fixes anything. It only reports.
"""

from collections import Counter
from typing import Optional

from tripbudget.models.catalog import DEFAULT_CATEGORIES
from tripbudget.models.trip import (
    AccountSnapshot,
    Trip,
    ValidationIssue,
    ValidationResult,
)


class SnapshotValidator:
    """
    Inspects an account snapshot and reports every issue found.

    Stage 1: Structural checks (invariants)
    Stage 2: Referential checks (weak references by name)
    """

    def validate(self, snapshot: AccountSnapshot) -> ValidationResult:
        issues = self._validate_structure(snapshot)
        issues.extend(self._validate_references(snapshot))
        return ValidationResult(issues=issues)

    def _validate_structure(self, snapshot: AccountSnapshot) -> list[ValidationIssue]:
        """Stage 1: invariants that every mutation is supposed to keep."""
        issues = []

        for category_id, count in Counter(c.id for c in snapshot.categories).items():
            if count > 1:
                issues.append(ValidationIssue(
                    entity="category",
                    entity_id=category_id,
                    issue_type="duplicate_id",
                    message=f"Category id '{category_id}' is used {count} times",
                    severity="error",
                ))

        for name, count in Counter(c.name for c in snapshot.categories).items():
            if count > 1:
                issues.append(ValidationIssue(
                    entity="category",
                    issue_type="duplicate_name",
                    message=f"Category name '{name}' is used {count} times",
                    severity="error",
                ))

        present = {c.id for c in snapshot.categories}
        for default in DEFAULT_CATEGORIES:
            if default.id not in present:
                issues.append(ValidationIssue(
                    entity="category",
                    entity_id=default.id,
                    issue_type="missing_default",
                    message=f"Default category '{default.name}' is missing",
                    severity="warning",
                ))

        for trip_id, count in Counter(t.id for t in snapshot.trips).items():
            if count > 1:
                issues.append(ValidationIssue(
                    entity="trip",
                    entity_id=trip_id,
                    issue_type="duplicate_id",
                    message=f"Trip id '{trip_id}' is used {count} times",
                    severity="error",
                ))

        for trip in snapshot.trips:
            issues.extend(self._validate_trip_structure(trip))

        return issues

    def _validate_trip_structure(self, trip: Trip) -> list[ValidationIssue]:
        issues = []

        if trip.main_currency not in trip.preferred_currencies:
            issues.append(ValidationIssue(
                entity="trip",
                entity_id=trip.id,
                issue_type="main_currency_not_preferred",
                message=(
                    f"Main currency {trip.main_currency} of trip '{trip.name}' "
                    "is not a preferred currency"
                ),
                severity="error",
            ))

        for expense_id, count in Counter(e.id for e in trip.expenses).items():
            if count > 1:
                issues.append(ValidationIssue(
                    entity="expense",
                    entity_id=expense_id,
                    issue_type="duplicate_id",
                    message=f"Expense id '{expense_id}' appears {count} times in trip '{trip.name}'",
                    severity="error",
                ))

        return issues

    def _validate_references(self, snapshot: AccountSnapshot) -> list[ValidationIssue]:
        """Stage 2: weak references and out-of-range records."""
        issues = []
        names = {c.name for c in snapshot.categories}

        for trip in snapshot.trips:
            for expense in trip.expenses:
                if expense.category not in names:
                    issues.append(self._stale("expense", expense.id, expense.category))
                if expense.currency not in trip.preferred_currencies:
                    issues.append(ValidationIssue(
                        entity="expense",
                        entity_id=expense.id,
                        issue_type="currency_not_preferred",
                        message=(
                            f"Expense in {expense.currency}, which is no longer "
                            f"a preferred currency of trip '{trip.name}'"
                        ),
                        severity="info",
                    ))
                if not self._within_trip(trip, expense.date):
                    issues.append(ValidationIssue(
                        entity="expense",
                        entity_id=expense.id,
                        issue_type="outside_trip_dates",
                        message=f"Expense dated {expense.date.date()} is outside trip '{trip.name}'",
                        severity="info",
                    ))

            for budget in trip.category_budgets:
                if budget.category_name not in names:
                    issues.append(self._stale("category_budget", None, budget.category_name))

            for template in trip.frequent_expenses:
                if template.category not in names:
                    issues.append(self._stale("frequent_expense", template.id, template.category))

        return issues

    @staticmethod
    def _stale(entity: str, entity_id: Optional[str], name: str) -> ValidationIssue:
        return ValidationIssue(
            entity=entity,
            entity_id=entity_id,
            issue_type="stale_reference",
            message=f"Category '{name}' no longer exists",
            severity="warning",
        )

    @staticmethod
    def _within_trip(trip: Trip, moment) -> bool:
        # Compare calendar days so aware and naive dates never meet directly
        return trip.start_date.date() <= moment.date() <= trip.end_date.date()
