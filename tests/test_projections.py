"""
Tests for the projection engine.

Every function is pure, so these are plain unit tests with a fixed today.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from household.models.analytics import RatioStatus
from household.models.records import (
    ALL,
    Budget,
    Category,
    Debt,
    Expense,
    Income,
    PaymentType,
    Period,
    Person,
    RecurringExpense,
    SavingsGoal,
)
from household.projections import (
    category_breakdown,
    debt_progress,
    debt_remaining,
    filter_expenses,
    monthly_savings_rate,
    period_window,
    project_budget,
    project_budgets,
    project_goal,
    project_goals,
    ratio_by_person,
    ratio_report,
    recurring_monthly_total,
    spending_ratio,
    thirty_day_projection,
    total_outstanding_debt,
    totals_by_person,
)


CREATED = datetime(2026, 1, 1, tzinfo=timezone.utc)
# September has 30 days; on the 11th, 10 days have elapsed
TODAY = date(2026, 9, 11)


def expense(amount, day, category=Category.FOOD, paid_by=Person.BOYFRIEND, **extra):
    return Expense(
        id=f"e-{amount}-{day}",
        created_at=CREATED,
        amount=Decimal(str(amount)),
        entry_date=day,
        category=category,
        paid_by=paid_by,
        **extra,
    )


def income(amount, day, person=Person.BOYFRIEND):
    return Income(
        id=f"i-{amount}-{day}",
        created_at=CREATED,
        amount=Decimal(str(amount)),
        entry_date=day,
        person=person,
    )


def budget(limit, period=Period.MONTHLY, category=ALL, person=ALL):
    return Budget(
        id="b1",
        created_at=CREATED,
        name="Budget",
        limit_amount=Decimal(str(limit)),
        period=period,
        category=category,
        person=person,
    )


def goal(target, current=0):
    return SavingsGoal(
        id="g1",
        created_at=CREATED,
        name="Goal",
        target_amount=Decimal(str(target)),
        current_amount=Decimal(str(current)),
    )


class TestPeriodWindow:

    def test_monthly(self):
        window = period_window(Period.MONTHLY, TODAY)
        assert (window.start, window.end, window.days) == (date(2026, 9, 1), date(2026, 9, 30), 30)

    def test_weekly_runs_sunday_to_saturday(self):
        # 2026-09-11 is a Friday
        window = period_window(Period.WEEKLY, TODAY)
        assert window.start == date(2026, 9, 6)
        assert window.end == date(2026, 9, 12)
        assert window.days == 7

    def test_weekly_on_a_sunday_starts_today(self):
        window = period_window(Period.WEEKLY, date(2026, 9, 6))
        assert window.start == date(2026, 9, 6)

    def test_biweekly_halves(self):
        first = period_window(Period.BIWEEKLY, TODAY)
        second = period_window(Period.BIWEEKLY, date(2026, 2, 20))
        assert (first.start, first.end) == (date(2026, 9, 1), date(2026, 9, 15))
        assert (second.start, second.end) == (date(2026, 2, 16), date(2026, 2, 28))


class TestBudgetProjection:

    def test_linear_projection_exceeds_limit(self):
        """Limit 1000, 10 of 30 days elapsed, 500 spent -> 1500 projected."""
        result = project_budget(budget(1000), [expense(500, date(2026, 9, 5))], TODAY)
        assert result.spent_to_date == Decimal("500")
        assert result.projected_total == Decimal("1500")
        assert result.projected_percent == Decimal("150")
        assert result.percent_used == Decimal("50")
        assert result.will_exceed is True
        assert result.trend_alert is True

    def test_zero_spend(self):
        for today in (date(2026, 9, 1), TODAY, date(2026, 9, 30)):
            result = project_budget(budget(1000), [], today)
            assert result.projected_total == 0
            assert result.will_exceed is False
            assert result.trend_alert is False

    def test_first_day_is_clamped_to_one_day(self):
        """Test that a period that just started does not divide by zero."""
        result = project_budget(budget(1000), [expense(10, date(2026, 9, 1))], date(2026, 9, 1))
        assert result.projected_total == Decimal("300")

    def test_spend_outside_window_is_ignored(self):
        result = project_budget(budget(1000), [expense(999, date(2026, 8, 31))], TODAY)
        assert result.spent_to_date == 0

    def test_category_and_person_filters(self):
        expenses = [
            expense(100, date(2026, 9, 2), Category.FOOD, Person.BOYFRIEND),
            expense(200, date(2026, 9, 2), Category.FOOD, Person.GIRLFRIEND),
            expense(400, date(2026, 9, 2), Category.HEALTH, Person.GIRLFRIEND),
        ]
        food = project_budget(budget(1000, category=Category.FOOD), expenses, TODAY)
        hers = project_budget(budget(1000, person=Person.GIRLFRIEND), expenses, TODAY)
        both = project_budget(
            budget(1000, category=Category.FOOD, person=Person.GIRLFRIEND), expenses, TODAY
        )
        assert food.spent_to_date == 300
        assert hers.spent_to_date == 600
        assert both.spent_to_date == 200

    def test_already_over_limit_is_not_a_trend_alert(self):
        result = project_budget(budget(100), [expense(150, date(2026, 9, 2))], TODAY)
        assert result.will_exceed is True
        assert result.trend_alert is False

    def test_zero_limit_does_not_blow_up(self):
        result = project_budget(budget(0), [expense(5, date(2026, 9, 2))], TODAY)
        assert result.will_exceed is True

    def test_project_budgets_maps_each(self):
        results = project_budgets([budget(10), budget(20)], [], TODAY)
        assert len(results) == 2


class TestGoalProjection:

    def test_zero_savings_rate_is_not_achievable(self):
        rate = monthly_savings_rate(Decimal("20000"), Decimal("20000"), Decimal("0"))
        result = project_goal(goal(10000), rate, TODAY)
        assert rate == 0
        assert result.achievable is False
        assert result.completion_date is None
        assert result.months_to_complete is None

    def test_negative_rate_is_not_achievable(self):
        result = project_goal(goal(10000), Decimal("-50"), TODAY)
        assert result.achievable is False

    def test_one_month_to_complete(self):
        rate = monthly_savings_rate(Decimal("20000"), Decimal("15000"), Decimal("0"))
        result = project_goal(goal(8000, 3000), rate, TODAY)
        assert rate == 5000
        assert result.remaining == 5000
        assert result.months_to_complete == 1
        assert result.achievable is True
        assert result.completion_date == date(2026, 10, 11)

    def test_fractional_months_round_days_up(self):
        result = project_goal(goal(1000), Decimal("3000"), TODAY)
        # 1/3 month = 10 days
        assert result.completion_date == date(2026, 9, 21)

    def test_completed_goal(self):
        result = project_goal(goal(1000, 1200), Decimal("0"), TODAY)
        assert result.remaining == 0
        assert result.achievable is True
        assert result.months_to_complete == 0

    def test_recurring_monthly_equivalents(self):
        recurring = [
            RecurringExpense(id="r1", created_at=CREATED, amount=Decimal("100"),
                             frequency=Period.MONTHLY, start_date=TODAY),
            RecurringExpense(id="r2", created_at=CREATED, amount=Decimal("100"),
                             frequency=Period.BIWEEKLY, start_date=TODAY),
            RecurringExpense(id="r3", created_at=CREATED, amount=Decimal("100"),
                             frequency=Period.WEEKLY, start_date=TODAY),
            RecurringExpense(id="r4", created_at=CREATED, amount=Decimal("999"),
                             frequency=Period.MONTHLY, start_date=TODAY, active=False),
        ]
        assert recurring_monthly_total(recurring) == Decimal("733")

    def test_thirty_day_projection(self):
        records = [income(1000, date(2026, 9, 3)), income(500, date(2026, 8, 30))]
        assert thirty_day_projection(records, TODAY) == Decimal("3000")
        assert thirty_day_projection([], TODAY) == 0

    def test_project_goals_uses_household_rate(self):
        incomes = [income(10000, date(2026, 9, 2))]
        expenses = [expense(5000, date(2026, 9, 2))]
        results = project_goals([goal(15000)], incomes, expenses, [], TODAY)
        # (30000 - 15000) per month
        assert results[0].monthly_savings_rate == 15000
        assert results[0].months_to_complete == 1


class TestSpendingRatio:

    @pytest.mark.parametrize("expense_total,status", [
        (500, RatioStatus.OK),
        (700, RatioStatus.WARM),
        (800, RatioStatus.WARM),
        (900, RatioStatus.HOT),
        (1000, RatioStatus.HOT),
        (1100, RatioStatus.DANGER),
    ])
    def test_status_bands(self, expense_total, status):
        assert spending_ratio(Decimal(expense_total), Decimal("1000")).status == status

    def test_half_is_ok(self):
        report = spending_ratio(Decimal("500"), Decimal("1000"))
        assert report.ratio == 0.5
        assert report.status == RatioStatus.OK

    def test_no_income_is_zero(self):
        report = spending_ratio(Decimal("0"), Decimal("0"))
        assert report.ratio == 0
        assert report.status == RatioStatus.OK
        assert spending_ratio(Decimal("300"), Decimal("0")).ratio == 0

    def test_ratio_report_and_per_person(self):
        expenses = [
            expense(300, TODAY, paid_by=Person.BOYFRIEND),
            expense(900, TODAY, paid_by=Person.GIRLFRIEND),
        ]
        incomes = [income(1000, TODAY, Person.BOYFRIEND), income(1000, TODAY, Person.GIRLFRIEND)]
        overall = ratio_report(expenses, incomes)
        assert overall.ratio == 0.6
        by_person = {r.person: r for r in ratio_by_person(expenses, incomes)}
        assert by_person[Person.BOYFRIEND].status == RatioStatus.OK
        assert by_person[Person.GIRLFRIEND].status == RatioStatus.HOT

    def test_empty_inputs(self):
        assert ratio_report([], []).ratio == 0


class TestSummaries:

    def test_category_breakdown_largest_first(self):
        expenses = [
            expense(10, TODAY, Category.FOOD),
            expense(50, TODAY, Category.HOME),
            expense(15, TODAY, Category.FOOD),
        ]
        breakdown = category_breakdown(expenses)
        assert [(c.category, c.total) for c in breakdown] == [("Home", 50), ("Food", 25)]

    def test_totals_by_person(self):
        totals = totals_by_person([expense(10, TODAY, paid_by=Person.GIRLFRIEND)])
        assert totals == {Person.BOYFRIEND: 0, Person.GIRLFRIEND: 10}

    def test_filter_expenses(self):
        expenses = [
            expense(1, date(2026, 9, 1), card="amex", payment_type=PaymentType.CREDIT),
            expense(2, date(2026, 9, 5), card="cash"),
            expense(3, date(2026, 9, 9), Category.HEALTH, Person.GIRLFRIEND, card="amex"),
        ]
        assert len(filter_expenses(expenses, date_from=date(2026, 9, 2))) == 2
        assert len(filter_expenses(expenses, date_to=date(2026, 9, 5))) == 2
        assert len(filter_expenses(expenses, card="amex")) == 2
        assert len(filter_expenses(expenses, person=Person.GIRLFRIEND)) == 1
        assert len(filter_expenses(expenses, category=Category.FOOD)) == 2
        assert len(filter_expenses(expenses, payment_type=PaymentType.CREDIT)) == 1


class TestDebts:

    def test_remaining_is_clamped(self):
        debt = Debt(id="d1", created_at=CREATED, total_amount=Decimal("100"), amount_paid=Decimal("130"))
        assert debt_remaining(debt) == 0
        assert debt_progress(debt) == 100

    def test_total_outstanding(self):
        debts = [
            Debt(id="d1", created_at=CREATED, total_amount=Decimal("100"), amount_paid=Decimal("40")),
            Debt(id="d2", created_at=CREATED, total_amount=Decimal("50")),
        ]
        assert total_outstanding_debt(debts) == Decimal("110")
        assert debt_progress(debts[0]) == 40
