"""Projection engine: budget, goal and ratio forecasts over record views."""

from household.projections.engine import (
    DAYS_PER_MONTH,
    RECURRING_MONTHLY_FACTOR,
    category_breakdown,
    debt_progress,
    debt_remaining,
    filter_expenses,
    monthly_savings_rate,
    project_budget,
    project_budgets,
    project_goal,
    project_goals,
    ratio_by_person,
    ratio_report,
    ratio_status,
    recurring_monthly_total,
    spending_ratio,
    thirty_day_projection,
    total_outstanding_debt,
    totals_by_person,
)
from household.projections.periods import elapsed_days, month_end, period_window

__all__ = [
    "DAYS_PER_MONTH",
    "RECURRING_MONTHLY_FACTOR",
    "category_breakdown",
    "debt_progress",
    "debt_remaining",
    "elapsed_days",
    "filter_expenses",
    "month_end",
    "monthly_savings_rate",
    "period_window",
    "project_budget",
    "project_budgets",
    "project_goal",
    "project_goals",
    "ratio_by_person",
    "ratio_report",
    "ratio_status",
    "recurring_monthly_total",
    "spending_ratio",
    "thirty_day_projection",
    "total_outstanding_debt",
    "totals_by_person",
]
