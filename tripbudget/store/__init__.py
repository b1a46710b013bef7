"""Entity store: invariant-preserving mutations over an account snapshot."""

from tripbudget.store.entity_store import (
    CurrencyNotAllowedError,
    DuplicateCategoryError,
    EntityStore,
    EntityStoreError,
    IdFactory,
    InvariantViolationError,
    MissingFallbackCategoryError,
    NotLoadedError,
    ProtectedEntityError,
    UnknownCategoryError,
    default_snapshot,
    expense_draft_from_template,
    normalize_categories,
)

__all__ = [
    "EntityStore",
    "IdFactory",
    "default_snapshot",
    "expense_draft_from_template",
    "normalize_categories",
    # Exceptions
    "CurrencyNotAllowedError",
    "DuplicateCategoryError",
    "EntityStoreError",
    "InvariantViolationError",
    "MissingFallbackCategoryError",
    "NotLoadedError",
    "ProtectedEntityError",
    "UnknownCategoryError",
]
