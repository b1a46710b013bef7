"""
Core Data Models for the Trip Budget Engine

These models define the strict schemas for all data held in an account
snapshot. They are designed to:
1. Enforce the record-level invariants at construction time
2. Round-trip through the remote JSON blob unchanged (camelCase on the wire)
3. Be immutable, so a snapshot can be shared safely between readers

DESIGN DECISION: Every entity is a frozen Pydantic v2 model. Mutations never
edit a model in place; the entity store builds new models and a new
snapshot instead. Lists inside frozen models are treated as read-only by
convention.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class EntityModel(BaseModel):
    """Base for everything stored in the account snapshot."""

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DraftModel(BaseModel):
    """Base for "add" payloads: an entity without its generated id."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(EntityModel):
    """
    An expense category.

    Expenses, budgets and templates point at a category by NAME, so the
    name must stay unique within an account.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="", max_length=20)


class CategoryDraft(DraftModel):
    """A category about to be added."""

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="", max_length=20)


# Shown for category names that no longer resolve to a category
UNKNOWN_CATEGORY_ICON = "💸"


class CategoryRef(BaseModel):
    """
    Result of looking a category up by name.

    A name that no longer matches any category is "stale": the reference
    is kept as-is, it just has no category behind it.
    """

    name: str
    category: Optional[Category] = None

    @property
    def is_stale(self) -> bool:
        return self.category is None

    @property
    def icon(self) -> str:
        return self.category.icon if self.category is not None else UNKNOWN_CATEGORY_ICON


def resolve_category(categories: Iterable[Category], name: str) -> CategoryRef:
    """Look a category up by name; the result may be stale."""
    match = next((c for c in categories if c.name == name), None)
    return CategoryRef(name=name, category=match)


# =============================================================================
# TRIP-OWNED RECORDS
# =============================================================================

class CategoryBudget(EntityModel):
    """
    Spending cap for one category inside one trip.

    Non-positive amounts are allowed here and pruned by the owning Trip,
    so callers can express "remove this budget" as amount 0.
    """

    category_name: str = Field(..., min_length=1)
    amount: float


class FrequentExpense(EntityModel):
    """A reusable expense template owned by one trip."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    icon: str = Field(default="", max_length=20)
    category: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)


class FrequentExpenseDraft(DraftModel):
    """A frequent-expense template about to be added."""

    name: str = Field(..., min_length=1, max_length=200)
    icon: str = Field(default="", max_length=20)
    category: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)


class Expense(EntityModel):
    """
    A single expense, owned by exactly one trip.

    `category` is a weak reference to a category name and may become
    stale; `currency` must be one of the owning trip's preferred currencies
    when the expense is created.
    """

    id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    category: str = Field(..., min_length=1)
    description: str = Field(default="", max_length=500)
    date: datetime
    country: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class ExpenseDraft(DraftModel):
    """An expense about to be added (no id yet)."""

    amount: float = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    category: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=500)
    date: datetime
    country: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


# =============================================================================
# TRIPS
# =============================================================================

def _normalize_currencies(main_currency: str, preferred: list[str]) -> list[str]:
    """Upper-case, de-duplicate and make sure the main currency is present."""
    cleaned = [c.strip().upper() for c in preferred if c and c.strip()]
    if main_currency not in cleaned:
        cleaned.insert(0, main_currency)
    return list(dict.fromkeys(cleaned))


def _normalize_budgets(budgets: list[CategoryBudget]) -> list[CategoryBudget]:
    """Drop non-positive budgets and keep one budget per category (last wins)."""
    by_name: dict[str, CategoryBudget] = {}
    for budget in budgets:
        by_name.pop(budget.category_name, None)
        by_name[budget.category_name] = budget
    return [b for b in by_name.values() if b.amount > 0]


class TripFields(DraftModel):
    """
    Fields shared by a trip and a trip draft.

    The validators here hold the trip-level invariants:
    - main currency is always a preferred currency
    - at most one positive budget per category name
    - the trip does not end before it starts
    """

    name: str = Field(..., min_length=1, max_length=200)
    start_date: datetime
    end_date: datetime
    total_budget: float = Field(..., gt=0)
    countries: list[str] = Field(default_factory=list)
    main_currency: str = Field(..., min_length=3, max_length=3)
    preferred_currencies: list[str] = Field(default_factory=list)
    frequent_expenses: list[FrequentExpense] = Field(default_factory=list)
    enable_category_budgets: bool = False
    category_budgets: list[CategoryBudget] = Field(default_factory=list)

    @field_validator("main_currency")
    @classmethod
    def upper_main_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def validate_trip(self):
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")

        currencies = _normalize_currencies(self.main_currency, self.preferred_currencies)
        budgets = _normalize_budgets(self.category_budgets)
        # Frozen subclasses reject normal assignment
        object.__setattr__(self, "preferred_currencies", currencies)
        object.__setattr__(self, "category_budgets", budgets)
        return self


class TripDraft(TripFields):
    """A trip about to be added. Expenses always start empty."""


class Trip(TripFields):
    """A trip and everything it owns."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    expenses: list[Expense] = Field(default_factory=list)

    @property
    def total_allocated_budget(self) -> float:
        """Sum of all category budgets."""
        return sum(b.amount for b in self.category_budgets)

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self.expenses if e.id == expense_id), None)

    def sorted_expenses(self) -> list[Expense]:
        """Expenses newest first."""
        return sorted(self.expenses, key=lambda e: e.date, reverse=True)


# =============================================================================
# ACCOUNT SNAPSHOT
# =============================================================================

class AccountSnapshot(EntityModel):
    """
    The single root of one user's data.

    This is exactly the JSON blob stored remotely under the account key.
    """

    trips: list[Trip] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        return next((t for t in self.trips if t.id == trip_id), None)

    def get_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def find_category_by_name(self, name: str) -> Optional[Category]:
        return next((c for c in self.categories if c.name == name), None)

    def resolve_category(self, name: str) -> CategoryRef:
        """Look a category up by name; the result may be stale."""
        return resolve_category(self.categories, name)

    def to_wire(self) -> dict:
        """Serialize to the camelCase JSON structure the remote store expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found while inspecting a snapshot."""

    entity: str = Field(
        ...,
        description="What the issue is about (e.g. 'category', 'trip', 'expense')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the offending entity, when it has one"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'duplicate_name', 'stale_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of inspecting one account snapshot."""

    validated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All issues found"
    )

    @property
    def is_valid(self) -> bool:
        """A snapshot is valid when it has no error-level issues."""
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]
