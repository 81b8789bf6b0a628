"""
Projection Engine

Turns the current record views into forecasts and summaries:
- budget spend to date and linear end-of-period projection
- savings goal achievability and completion date
- expense-to-income ratio and its status band

DESIGN DECISION: Every function here is PURE.
No I/O, no clock reads unless `today` is omitted, no writes back to the
collections. Given the same records and the same `today`, the output is
the same. All money stays Decimal end to end.

Two rules hold everywhere:
1. An empty input is a zero total, never an error
2. Every division has a floor of one unit, so a period that just started
   or a zero limit cannot blow up the arithmetic
"""

import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from household.models.analytics import (
    BudgetProjection,
    CategoryTotal,
    GoalProjection,
    PersonRatio,
    RatioReport,
    RatioStatus,
)
from household.models.records import (
    ALL,
    Budget,
    Category,
    CategoryFilter,
    Debt,
    Expense,
    Income,
    PaymentType,
    Period,
    Person,
    PersonFilter,
    RecurringExpense,
    SavingsGoal,
)
from household.projections.periods import elapsed_days, period_window


ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# Days a "month" is worth in every forecast
DAYS_PER_MONTH = 30

# Monthly equivalent of one charge at each frequency
RECURRING_MONTHLY_FACTOR: dict[Period, Decimal] = {
    Period.MONTHLY: Decimal("1"),
    Period.BIWEEKLY: Decimal("2"),
    Period.WEEKLY: Decimal("4.33"),
}

# Upper bound of each status band, checked in order
RATIO_BANDS: tuple[tuple[float, RatioStatus], ...] = (
    (0.5, RatioStatus.OK),
    (0.8, RatioStatus.WARM),
    (1.0, RatioStatus.HOT),
)

Dated = Union[Expense, Income]


def _floor(value: Decimal) -> Decimal:
    return value if value >= ONE else ONE


def _total(records: Iterable) -> Decimal:
    return sum((record.amount for record in records), ZERO)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return part / _floor(whole) * HUNDRED


def _matches_person(person: PersonFilter, candidate: Person) -> bool:
    return person == ALL or person == candidate


def _matches_category(category: CategoryFilter, candidate: Category) -> bool:
    return category == ALL or category == candidate


# =============================================================================
# BUDGETS
# =============================================================================

def project_budget(
    budget: Budget,
    expenses: Iterable[Expense],
    today: Optional[date] = None,
) -> BudgetProjection:
    """
    Spend so far in the budget's current window and where it is heading.

    projected_total = spent * window_days / elapsed_days

    Example: a monthly limit of 1000 in a 30-day month, 10 days elapsed,
    500 spent -> projected 1500, will_exceed.
    """
    today = today or date.today()
    window = period_window(budget.period, today)
    spent = _total(
        expense for expense in expenses
        if window.contains(expense.entry_date)
        and _matches_category(budget.category, expense.category)
        and _matches_person(budget.person, expense.paid_by)
    )
    projected = spent * window.days / elapsed_days(window, today)

    percent_used = _percent(spent, budget.limit_amount)
    projected_percent = _percent(projected, budget.limit_amount)

    return BudgetProjection(
        budget=budget,
        window=window,
        spent_to_date=spent,
        projected_total=projected,
        projected_percent=projected_percent,
        percent_used=percent_used,
        will_exceed=projected > budget.limit_amount,
        trend_alert=projected_percent > HUNDRED and percent_used < HUNDRED,
    )


def project_budgets(
    budgets: Iterable[Budget],
    expenses: Sequence[Expense],
    today: Optional[date] = None,
) -> list[BudgetProjection]:
    today = today or date.today()
    return [project_budget(budget, expenses, today) for budget in budgets]


# =============================================================================
# SAVINGS GOALS
# =============================================================================

def thirty_day_projection(
    records: Iterable[Dated],
    today: Optional[date] = None,
) -> Decimal:
    """Month-to-date total scaled to a 30-day month."""
    today = today or date.today()
    window = period_window(Period.MONTHLY, today)
    month_to_date = _total(
        record for record in records
        if window.start <= record.entry_date <= today
    )
    return month_to_date * DAYS_PER_MONTH / elapsed_days(window, today)


def recurring_monthly_total(recurring: Iterable[RecurringExpense]) -> Decimal:
    """Monthly obligations of every active recurring charge."""
    return sum(
        (
            item.amount * RECURRING_MONTHLY_FACTOR[Period(item.frequency)]
            for item in recurring
            if item.active
        ),
        ZERO,
    )


def monthly_savings_rate(
    monthly_income: Decimal,
    monthly_expense: Decimal,
    monthly_recurring: Decimal = ZERO,
) -> Decimal:
    """Net amount left each month. Can be zero or negative."""
    return Decimal(monthly_income) - Decimal(monthly_expense) - Decimal(monthly_recurring)


def project_goal(
    goal: SavingsGoal,
    savings_rate: Decimal,
    today: Optional[date] = None,
) -> GoalProjection:
    """
    Whether a goal completes at the given monthly rate, and when.

    A goal already at its target is achievable in zero months. Otherwise
    a rate of zero or less means not currently achievable, with no date.
    """
    today = today or date.today()
    savings_rate = Decimal(savings_rate)
    remaining = max(ZERO, goal.target_amount - goal.current_amount)

    if remaining == ZERO:
        return GoalProjection(
            goal=goal,
            remaining=remaining,
            monthly_savings_rate=savings_rate,
            months_to_complete=ZERO,
            achievable=True,
            completion_date=today,
        )
    if savings_rate <= ZERO:
        return GoalProjection(
            goal=goal,
            remaining=remaining,
            monthly_savings_rate=savings_rate,
            achievable=False,
        )

    months = remaining / savings_rate
    return GoalProjection(
        goal=goal,
        remaining=remaining,
        monthly_savings_rate=savings_rate,
        months_to_complete=months,
        achievable=True,
        completion_date=today + timedelta(days=math.ceil(months * DAYS_PER_MONTH)),
    )


def project_goals(
    goals: Iterable[SavingsGoal],
    incomes: Sequence[Income],
    expenses: Sequence[Expense],
    recurring: Sequence[RecurringExpense],
    today: Optional[date] = None,
) -> list[GoalProjection]:
    """Project every goal at the household's current monthly savings rate."""
    today = today or date.today()
    rate = monthly_savings_rate(
        thirty_day_projection(incomes, today),
        thirty_day_projection(expenses, today),
        recurring_monthly_total(recurring),
    )
    return [project_goal(goal, rate, today) for goal in goals]


# =============================================================================
# SPENDING RATIO
# =============================================================================

def ratio_status(ratio: float) -> RatioStatus:
    for upper, status in RATIO_BANDS:
        if ratio <= upper:
            return status
    return RatioStatus.DANGER


def spending_ratio(total_expense: Decimal, total_income: Decimal) -> RatioReport:
    """
    Expense-to-income ratio. Zero when there is no income.

    Example: income 1000, expense 500 -> ratio 0.5, status ok.
    """
    total_expense = Decimal(total_expense)
    total_income = Decimal(total_income)
    ratio = float(total_expense / total_income) if total_income > ZERO else 0.0
    return RatioReport(
        total_income=total_income,
        total_expense=total_expense,
        ratio=ratio,
        status=ratio_status(ratio),
    )


def ratio_report(
    expenses: Iterable[Expense],
    incomes: Iterable[Income],
) -> RatioReport:
    return spending_ratio(_total(expenses), _total(incomes))


def ratio_by_person(
    expenses: Sequence[Expense],
    incomes: Sequence[Income],
) -> list[PersonRatio]:
    """The same ratio computed for each person separately."""
    reports = []
    for person in Person:
        overall = spending_ratio(
            _total(e for e in expenses if e.paid_by == person),
            _total(i for i in incomes if i.person == person),
        )
        reports.append(PersonRatio(person=person, **overall.model_dump()))
    return reports


# =============================================================================
# SUMMARIES
# =============================================================================

def category_breakdown(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """Spend per category, largest first. Empty categories are left out."""
    totals: dict[Category, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount
    return [
        CategoryTotal(category=Category(category).value, total=total)
        for category, total in sorted(totals.items(), key=lambda item: item[1], reverse=True)
        if total != ZERO
    ]


def totals_by_person(expenses: Iterable[Expense]) -> dict[Person, Decimal]:
    totals = {person: ZERO for person in Person}
    for expense in expenses:
        totals[expense.paid_by] += expense.amount
    return totals


def filter_expenses(
    expenses: Iterable[Expense],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    person: PersonFilter = ALL,
    card: Optional[str] = None,
    category: CategoryFilter = ALL,
    payment_type: Optional[PaymentType] = None,
) -> list[Expense]:
    """Expenses matching every given filter. Date bounds are inclusive."""
    matched = []
    for expense in expenses:
        if date_from and expense.entry_date < date_from:
            continue
        if date_to and expense.entry_date > date_to:
            continue
        if not _matches_person(person, expense.paid_by):
            continue
        if card and expense.card != card:
            continue
        if not _matches_category(category, expense.category):
            continue
        if payment_type and expense.payment_type != payment_type:
            continue
        matched.append(expense)
    return matched


# =============================================================================
# DEBTS
# =============================================================================

def debt_remaining(debt: Debt) -> Decimal:
    """What is still owed. Overpayment counts as nothing owed."""
    return max(ZERO, debt.total_amount - debt.amount_paid)


def total_outstanding_debt(debts: Iterable[Debt]) -> Decimal:
    return sum((debt_remaining(debt) for debt in debts), ZERO)


def debt_progress(debt: Debt) -> Decimal:
    """Percent paid, capped at 100."""
    return min(HUNDRED, _percent(debt.amount_paid, debt.total_amount))
