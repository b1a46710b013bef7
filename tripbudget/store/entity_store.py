"""
Entity Store

All mutations of an account snapshot live here.

DESIGN DECISION: The store holds no state of its own. Every operation takes
the current snapshot and returns a NEW snapshot; the input is never touched.
This gives three guarantees:
1. A rejected mutation cannot leave a half-updated snapshot behind
2. "Nothing to do" is visible by identity (the same object comes back)
3. Readers holding an older snapshot keep seeing a consistent account

Invariant violations are raised BEFORE anything is built. Unknown target ids
(a trip, expense or category that is not there) are a no-op.

Categories are referenced by NAME from expenses, budgets and templates.
Renames and deletions therefore cascade through every trip.
"""

import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from tripbudget.models.catalog import (
    CURRENCY_TO_COUNTRY,
    CUSTOM_CATEGORY_ID_PREFIX,
    FALLBACK_CATEGORY_ID,
    default_categories,
    is_default_category,
)
from tripbudget.models.trip import (
    AccountSnapshot,
    Category,
    CategoryBudget,
    CategoryDraft,
    Expense,
    ExpenseDraft,
    FrequentExpense,
    FrequentExpenseDraft,
    Trip,
    TripDraft,
)


# =============================================================================
# ERRORS
# =============================================================================

class EntityStoreError(Exception):
    """Base exception for rejected entity mutations."""
    pass


class NotLoadedError(EntityStoreError):
    """A mutation was attempted before any snapshot was loaded."""
    pass


class ProtectedEntityError(EntityStoreError):
    """Attempt to rename, edit or delete a default category."""
    pass


class MissingFallbackCategoryError(EntityStoreError):
    """A category cannot be deleted because there is nowhere to move its expenses."""
    pass


class InvariantViolationError(EntityStoreError):
    """The mutation would break an account invariant."""
    pass


class DuplicateCategoryError(InvariantViolationError):
    """Another category already uses this name."""
    pass


class UnknownCategoryError(InvariantViolationError):
    """A new record references a category name that does not exist."""
    pass


class CurrencyNotAllowedError(InvariantViolationError):
    """An expense currency is not one of the trip's preferred currencies."""
    pass


# =============================================================================
# IDS
# =============================================================================

class IdFactory:
    """
    Millisecond-timestamp ids that never repeat within a process.

    Two ids requested in the same millisecond are bumped apart, and an id
    already present in `taken` is skipped.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0

    def __call__(self, prefix: str = "", taken: Iterable[str] = ()) -> str:
        taken = set(taken)
        candidate = max(int(self._clock() * 1000), self._last + 1)
        while f"{prefix}{candidate}" in taken:
            candidate += 1
        self._last = candidate
        return f"{prefix}{candidate}"


# =============================================================================
# HELPERS
# =============================================================================

def default_snapshot() -> AccountSnapshot:
    """A brand new account: no trips, default categories only."""
    return AccountSnapshot(trips=[], categories=default_categories())


def normalize_categories(snapshot: AccountSnapshot) -> AccountSnapshot:
    """
    Make sure every default category is present.

    No categories at all: the defaults are used. Some defaults missing: the
    defaults are put back at the front and custom categories kept after them.
    """
    if not snapshot.categories:
        return AccountSnapshot(trips=snapshot.trips, categories=default_categories())

    present = {c.id for c in snapshot.categories}
    defaults = default_categories()
    if all(c.id in present for c in defaults):
        return snapshot

    custom = [c for c in snapshot.categories if not is_default_category(c.id)]
    return AccountSnapshot(trips=snapshot.trips, categories=[*defaults, *custom])


def expense_draft_from_template(
    trip: Trip,
    template_id: str,
    currency: Optional[str] = None,
    date: Optional[datetime] = None,
) -> Optional[ExpenseDraft]:
    """
    Prefill an expense from one of the trip's frequent-expense templates.

    The amount is taken as-is in `currency` (the trip's main currency when
    not given). Returns None if the template does not exist.
    """
    template = next((f for f in trip.frequent_expenses if f.id == template_id), None)
    if template is None:
        return None
    return ExpenseDraft(
        amount=template.amount,
        currency=currency or trip.main_currency,
        category=template.category,
        description=template.name,
        date=date or datetime.now(),
    )


def _require(snapshot: Optional[AccountSnapshot]) -> AccountSnapshot:
    if snapshot is None:
        raise NotLoadedError("No account snapshot is loaded")
    return snapshot


def _revalidated(record):
    """Re-run validation on a record built elsewhere (e.g. with model_copy)."""
    return type(record).model_validate(record.model_dump())


def _rebuild_trip(trip: Trip, **changes) -> Trip:
    """Build a new Trip from an old one, re-running the trip validators."""
    data = {name: getattr(trip, name) for name in Trip.model_fields}
    data.update(changes)
    return Trip(**data)


def _with_trip(snapshot: AccountSnapshot, trip: Trip) -> AccountSnapshot:
    trips = [trip if t.id == trip.id else t for t in snapshot.trips]
    return AccountSnapshot(trips=trips, categories=snapshot.categories)


def _check_category_name(snapshot: AccountSnapshot, name: str) -> None:
    if snapshot.find_category_by_name(name) is None:
        raise UnknownCategoryError(f"Category '{name}' does not exist")


def _check_currency(trip: Trip, currency: str) -> None:
    if currency not in trip.preferred_currencies:
        raise CurrencyNotAllowedError(
            f"Currency {currency} is not a preferred currency of trip '{trip.name}'"
        )


# =============================================================================
# ENTITY STORE
# =============================================================================

class EntityStore:
    """
    Snapshot-in, snapshot-out mutation operations.

    Every public operation:
    - raises NotLoadedError when given no snapshot
    - raises an EntityStoreError subclass (or a pydantic ValidationError for
      malformed records) without building anything
    - returns the SAME snapshot object when there is nothing to change
    """

    def __init__(
        self,
        id_factory: Optional[IdFactory] = None,
        fallback_category_id: str = FALLBACK_CATEGORY_ID,
    ):
        self._new_id = id_factory or IdFactory()
        self._fallback_category_id = fallback_category_id

    # ==================== TRIPS ====================

    def add_trip(
        self,
        snapshot: Optional[AccountSnapshot],
        draft: TripDraft,
    ) -> AccountSnapshot:
        """Append a new trip with a fresh id and no expenses."""
        snapshot = _require(snapshot)
        trip_id = self._new_id(taken=(t.id for t in snapshot.trips))
        trip = Trip(id=trip_id, expenses=[], **{
            name: getattr(draft, name) for name in TripDraft.model_fields
        })
        return AccountSnapshot(
            trips=[*snapshot.trips, trip],
            categories=snapshot.categories,
        )

    def update_trip(
        self,
        snapshot: Optional[AccountSnapshot],
        trip: Trip,
    ) -> AccountSnapshot:
        """
        Replace a trip (matched by id) with the given full record.

        The record and everything it owns is validated again before it is
        swapped in.
        """
        snapshot = _require(snapshot)
        existing = snapshot.get_trip(trip.id)
        if existing is None or existing is trip:
            return snapshot
        trip = _revalidated(trip)
        if trip == existing:
            return snapshot
        return _with_trip(snapshot, trip)

    def delete_trip(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
    ) -> AccountSnapshot:
        """Remove a trip together with everything it owns."""
        snapshot = _require(snapshot)
        if snapshot.get_trip(trip_id) is None:
            return snapshot
        return AccountSnapshot(
            trips=[t for t in snapshot.trips if t.id != trip_id],
            categories=snapshot.categories,
        )

    # ==================== EXPENSES ====================

    def add_expense(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        draft: ExpenseDraft,
    ) -> AccountSnapshot:
        """
        Append an expense to a trip.

        The category must exist and the currency must be one of the trip's
        preferred currencies. A missing country is inferred from the currency.
        """
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None:
            return snapshot

        _check_category_name(snapshot, draft.category)
        _check_currency(trip, draft.currency)

        expense = Expense(
            id=self._new_id(taken=(e.id for e in trip.expenses)),
            amount=draft.amount,
            currency=draft.currency,
            category=draft.category,
            description=draft.description,
            date=draft.date,
            country=draft.country or CURRENCY_TO_COUNTRY.get(draft.currency),
        )
        return _with_trip(snapshot, _rebuild_trip(trip, expenses=[*trip.expenses, expense]))

    def update_expense(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        expense: Expense,
    ) -> AccountSnapshot:
        """
        Replace an expense (matched by id) inside a trip.

        Category and currency are only checked when they change, so an
        expense with a stale category can still be edited.
        """
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None:
            return snapshot
        existing = trip.get_expense(expense.id)
        if existing is None or existing is expense:
            return snapshot
        expense = _revalidated(expense)

        if expense.category != existing.category:
            _check_category_name(snapshot, expense.category)
        if expense.currency != existing.currency:
            _check_currency(trip, expense.currency)

        expenses = [expense if e.id == expense.id else e for e in trip.expenses]
        return _with_trip(snapshot, _rebuild_trip(trip, expenses=expenses))

    def delete_expense(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        expense_id: str,
    ) -> AccountSnapshot:
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None or trip.get_expense(expense_id) is None:
            return snapshot
        expenses = [e for e in trip.expenses if e.id != expense_id]
        return _with_trip(snapshot, _rebuild_trip(trip, expenses=expenses))

    # ==================== CATEGORIES ====================

    def add_category(
        self,
        snapshot: Optional[AccountSnapshot],
        draft: CategoryDraft,
    ) -> AccountSnapshot:
        """Append a custom category. Names must be unique."""
        snapshot = _require(snapshot)
        if snapshot.find_category_by_name(draft.name) is not None:
            raise DuplicateCategoryError(f"Category '{draft.name}' already exists")

        category = Category(
            id=self._new_id(
                prefix=CUSTOM_CATEGORY_ID_PREFIX,
                taken=(c.id for c in snapshot.categories),
            ),
            name=draft.name,
            icon=draft.icon,
        )
        return AccountSnapshot(
            trips=snapshot.trips,
            categories=[*snapshot.categories, category],
        )

    def update_category(
        self,
        snapshot: Optional[AccountSnapshot],
        category: Category,
    ) -> AccountSnapshot:
        """
        Replace a custom category (matched by id).

        A rename is applied to every expense, category budget and frequent
        expense that referenced the old name, in the same new snapshot.
        """
        snapshot = _require(snapshot)
        existing = snapshot.get_category(category.id)
        if existing is None or existing == category:
            return snapshot

        if is_default_category(category.id):
            raise ProtectedEntityError(
                f"Default category '{existing.name}' cannot be changed"
            )
        category = _revalidated(category)

        clash = snapshot.find_category_by_name(category.name)
        if clash is not None and clash.id != category.id:
            raise DuplicateCategoryError(f"Category '{category.name}' already exists")

        categories = [category if c.id == category.id else c for c in snapshot.categories]
        trips = snapshot.trips
        if existing.name != category.name:
            trips = [
                self._rename_in_trip(trip, existing.name, category.name)
                for trip in snapshot.trips
            ]
        return AccountSnapshot(trips=trips, categories=categories)

    def delete_category(
        self,
        snapshot: Optional[AccountSnapshot],
        category_id: str,
    ) -> AccountSnapshot:
        """
        Delete a custom category.

        Expenses and frequent expenses that used it move to the fallback
        category; category budgets for it are dropped.

        Raises:
            ProtectedEntityError: For a default category
            MissingFallbackCategoryError: If the fallback category is gone
        """
        snapshot = _require(snapshot)
        if is_default_category(category_id):
            raise ProtectedEntityError("Default categories cannot be deleted")

        doomed = snapshot.get_category(category_id)
        if doomed is None:
            return snapshot

        fallback = snapshot.get_category(self._fallback_category_id)
        if fallback is None:
            raise MissingFallbackCategoryError(
                f"Fallback category '{self._fallback_category_id}' not found; "
                "cannot reassign expenses"
            )

        trips = [
            self._reassign_in_trip(trip, doomed.name, fallback.name)
            for trip in snapshot.trips
        ]
        return AccountSnapshot(
            trips=trips,
            categories=[c for c in snapshot.categories if c.id != category_id],
        )

    @staticmethod
    def _rename_in_trip(trip: Trip, old: str, new: str) -> Trip:
        touched = (
            any(e.category == old for e in trip.expenses)
            or any(b.category_name == old for b in trip.category_budgets)
            or any(f.category == old for f in trip.frequent_expenses)
        )
        if not touched:
            return trip
        return _rebuild_trip(
            trip,
            expenses=[
                e.model_copy(update={"category": new}) if e.category == old else e
                for e in trip.expenses
            ],
            category_budgets=[
                b.model_copy(update={"category_name": new}) if b.category_name == old else b
                for b in trip.category_budgets
            ],
            frequent_expenses=[
                f.model_copy(update={"category": new}) if f.category == old else f
                for f in trip.frequent_expenses
            ],
        )

    @staticmethod
    def _reassign_in_trip(trip: Trip, old: str, fallback: str) -> Trip:
        touched = (
            any(e.category == old for e in trip.expenses)
            or any(b.category_name == old for b in trip.category_budgets)
            or any(f.category == old for f in trip.frequent_expenses)
        )
        if not touched:
            return trip
        return _rebuild_trip(
            trip,
            expenses=[
                e.model_copy(update={"category": fallback}) if e.category == old else e
                for e in trip.expenses
            ],
            category_budgets=[b for b in trip.category_budgets if b.category_name != old],
            frequent_expenses=[
                f.model_copy(update={"category": fallback}) if f.category == old else f
                for f in trip.frequent_expenses
            ],
        )

    # ==================== FREQUENT EXPENSES ====================

    def add_frequent_expense(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        draft: FrequentExpenseDraft,
    ) -> AccountSnapshot:
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None:
            return snapshot

        _check_category_name(snapshot, draft.category)

        template = FrequentExpense(
            id=self._new_id(taken=(f.id for f in trip.frequent_expenses)),
            name=draft.name,
            icon=draft.icon,
            category=draft.category,
            amount=draft.amount,
        )
        return _with_trip(
            snapshot,
            _rebuild_trip(trip, frequent_expenses=[*trip.frequent_expenses, template]),
        )

    def delete_frequent_expense(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        template_id: str,
    ) -> AccountSnapshot:
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None or not any(f.id == template_id for f in trip.frequent_expenses):
            return snapshot
        templates = [f for f in trip.frequent_expenses if f.id != template_id]
        return _with_trip(snapshot, _rebuild_trip(trip, frequent_expenses=templates))

    # ==================== CATEGORY BUDGETS ====================

    def set_category_budget(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        category_name: str,
        amount: float,
    ) -> AccountSnapshot:
        """Create or replace the budget for one category; amount <= 0 removes it."""
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None:
            return snapshot

        current = next(
            (b for b in trip.category_budgets if b.category_name == category_name),
            None,
        )
        if amount <= 0:
            if current is None:
                return snapshot
            budgets = [b for b in trip.category_budgets if b.category_name != category_name]
        else:
            if current is not None and current.amount == amount:
                return snapshot
            _check_category_name(snapshot, category_name)
            budget = CategoryBudget(category_name=category_name, amount=amount)
            if current is None:
                budgets = [*trip.category_budgets, budget]
            else:
                budgets = [
                    budget if b.category_name == category_name else b
                    for b in trip.category_budgets
                ]
        return _with_trip(snapshot, _rebuild_trip(trip, category_budgets=budgets))

    def set_category_budgets_enabled(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        enabled: bool,
    ) -> AccountSnapshot:
        """Toggle budget tracking. Existing budgets are kept either way."""
        snapshot = _require(snapshot)
        trip = snapshot.get_trip(trip_id)
        if trip is None or trip.enable_category_budgets == enabled:
            return snapshot
        return _with_trip(snapshot, _rebuild_trip(trip, enable_category_budgets=enabled))

    # ==================== PREFERRED CURRENCIES ====================

    def add_preferred_currency(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        currency: str,
    ) -> AccountSnapshot:
        snapshot = _require(snapshot)
        code = currency.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise InvariantViolationError(f"'{currency}' is not a currency code")

        trip = snapshot.get_trip(trip_id)
        if trip is None or code in trip.preferred_currencies:
            return snapshot
        return _with_trip(
            snapshot,
            _rebuild_trip(trip, preferred_currencies=[*trip.preferred_currencies, code]),
        )

    def remove_preferred_currency(
        self,
        snapshot: Optional[AccountSnapshot],
        trip_id: str,
        currency: str,
    ) -> AccountSnapshot:
        """
        Drop a preferred currency.

        Existing expenses in that currency are left alone; only new expenses
        are restricted to the preferred list.
        """
        snapshot = _require(snapshot)
        code = currency.strip().upper()
        trip = snapshot.get_trip(trip_id)
        if trip is None or code not in trip.preferred_currencies:
            return snapshot
        if code == trip.main_currency:
            raise InvariantViolationError(
                f"{code} is the main currency of trip '{trip.name}' and cannot be removed"
            )
        currencies = [c for c in trip.preferred_currencies if c != code]
        return _with_trip(snapshot, _rebuild_trip(trip, preferred_currencies=currencies))
