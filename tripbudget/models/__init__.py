"""
Data Models Package

This package contains all Pydantic models used by the trip budget engine.
All data held in an account snapshot must conform to these schemas.
"""

from tripbudget.models.trip import (
    UNKNOWN_CATEGORY_ICON,
    AccountSnapshot,
    Category,
    CategoryBudget,
    CategoryDraft,
    CategoryRef,
    Expense,
    ExpenseDraft,
    FrequentExpense,
    FrequentExpenseDraft,
    Trip,
    TripDraft,
    ValidationIssue,
    ValidationResult,
    resolve_category,
)
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
from tripbudget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "AccountSnapshot",
    "Category",
    "CategoryBudget",
    "CategoryDraft",
    "CategoryRef",
    "Expense",
    "ExpenseDraft",
    "FrequentExpense",
    "FrequentExpenseDraft",
    "Trip",
    "TripDraft",
    "ValidationIssue",
    "ValidationResult",
    "UNKNOWN_CATEGORY_ICON",
    "resolve_category",
    # Derived statistics
    "BudgetStatus",
    "CategoryBudgetUsage",
    "CategorySpend",
    "DailyBurn",
    "SpendingTrend",
    "TrendPoint",
    "TripSummary",
    "TripTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
