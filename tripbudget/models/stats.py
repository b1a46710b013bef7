"""
Derived Statistics Models

Results produced by the aggregation queries. They are plain value objects:
recomputed on every query, never stored in the snapshot.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class BudgetStatus(str, Enum):
    """How close a category is to its budget."""
    NORMAL = "normal"    # below the warning threshold
    WARNING = "warning"  # threshold reached, still under 100%
    OVER = "over"        # 100% or more


class TripTotals(BaseModel):
    """Headline numbers for one trip, in the trip's main currency."""

    currency: str
    total_spent: float
    total_budget: float
    remaining: float = Field(
        ...,
        description="Budget minus spend; negative once the trip is over budget"
    )
    progress_pct: float = Field(
        ...,
        description="Spend as a percentage of budget; not clamped to 100"
    )


class DailyBurn(BaseModel):
    """Average spend per elapsed trip day."""

    days_elapsed: int = Field(ge=1)
    daily_average: float


class CategorySpend(BaseModel):
    """One slice of the category breakdown."""

    name: str
    icon: str
    amount: float
    percentage: float
    is_stale: bool = Field(
        default=False,
        description="The category name no longer matches any category"
    )


class CategoryBudgetUsage(BaseModel):
    """Spend against one declared category budget."""

    category_name: str
    icon: str
    budget: float
    spent: float
    percentage: float
    status: BudgetStatus

    @property
    def remaining(self) -> float:
        return self.budget - self.spent


class TrendPoint(BaseModel):
    """Spend on one calendar day and the running total up to it."""

    day: date
    spent: float
    cumulative: float


class SpendingTrend(BaseModel):
    """Cumulative spend curve for a trip, one point per day."""

    points: list[TrendPoint] = Field(default_factory=list)
    ideal_daily_burn: float
    total_days: int = Field(ge=1)

    @property
    def final_cumulative(self) -> float:
        return self.points[-1].cumulative if self.points else 0.0

    def ideal_cumulative(self, index: int) -> float:
        """Budget-paced cumulative spend at the end of the index-th day."""
        return self.ideal_daily_burn * (index + 1)


class TripSummary(BaseModel):
    """Everything the dashboard shows for one trip, computed in one pass."""

    trip_id: str
    totals: TripTotals
    burn: DailyBurn
    categories: list[CategorySpend] = Field(default_factory=list)
    budgets: list[CategoryBudgetUsage] = Field(default_factory=list)
    trend: SpendingTrend
