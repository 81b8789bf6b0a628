"""
Projection Result Models

Outputs of the projection engine. They are derived, never persisted,
and recomputed wholesale whenever the underlying views change.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from household.models.records import Budget, Money, Person, SavingsGoal


class RatioStatus(str, Enum):
    """
    Ordinal bands of the expense-to-income ratio.

    Drives alerting in the UI, from "all good" to "over budget".
    """
    OK = "ok"          # ratio <= 0.5
    WARM = "warm"      # ratio <= 0.8
    HOT = "hot"        # ratio <= 1.0
    DANGER = "danger"  # ratio > 1.0


class PeriodWindow(BaseModel):
    """The current weekly/biweekly/monthly date range, inclusive."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class BudgetProjection(BaseModel):
    """Spend so far and linear end-of-period forecast for one budget."""

    budget: Budget
    window: PeriodWindow
    spent_to_date: Money
    projected_total: Money
    projected_percent: Decimal = Field(
        ...,
        description="projected_total as a percentage of the limit"
    )
    percent_used: Decimal = Field(
        ...,
        description="spent_to_date as a percentage of the limit"
    )
    will_exceed: bool
    trend_alert: bool = Field(
        ...,
        description="Forecast exceeds the limit while spend so far does not"
    )


class GoalProjection(BaseModel):
    """Whether and when a savings goal completes at the current rate."""

    goal: SavingsGoal
    remaining: Money
    monthly_savings_rate: Money
    months_to_complete: Optional[Decimal] = None
    achievable: bool
    completion_date: Optional[date] = None


class RatioReport(BaseModel):
    """Expense-to-income ratio and its status band."""

    total_income: Money
    total_expense: Money
    ratio: float
    status: RatioStatus

    @property
    def percent(self) -> float:
        """Gauge fill, capped at 120%."""
        return min(self.ratio * 100, 120.0)


class PersonRatio(RatioReport):
    """RatioReport restricted to one person."""

    person: Person


class CategoryTotal(BaseModel):
    """One slice of a category breakdown."""

    category: str
    total: Money
