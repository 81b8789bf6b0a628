"""
Period Windows

Budgets never store their date range. The current window is derived from
the budget's period and today's date every time it is needed.
"""

import calendar
from datetime import date, timedelta
from typing import Union

from household.models.analytics import PeriodWindow
from household.models.records import Period


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def period_window(period: Union[Period, str], today: date) -> PeriodWindow:
    """
    The window of the given period that contains today.

    - weekly: Sunday through Saturday
    - biweekly: the 1st-15th or the 16th-end of the month
    - monthly: the calendar month
    """
    period = Period(period)
    if period == Period.WEEKLY:
        # isoweekday: Monday=1 ... Sunday=7
        start = today - timedelta(days=today.isoweekday() % 7)
        return PeriodWindow(start=start, end=start + timedelta(days=6))
    if period == Period.BIWEEKLY:
        if today.day <= 15:
            return PeriodWindow(start=today.replace(day=1), end=today.replace(day=15))
        return PeriodWindow(start=today.replace(day=16), end=month_end(today))
    return PeriodWindow(start=today.replace(day=1), end=month_end(today))


def elapsed_days(window: PeriodWindow, today: date) -> int:
    """Whole days since the window started, never less than one."""
    return max(1, (today - window.start).days)
