"""Document normalization package."""

from household.normalization.normalizer import (
    normalize_budget,
    normalize_debt,
    normalize_document,
    normalize_expense,
    normalize_goal,
    normalize_income,
    normalize_recurring,
    to_day,
    to_decimal,
    to_timestamp,
)

__all__ = [
    "normalize_budget",
    "normalize_debt",
    "normalize_document",
    "normalize_expense",
    "normalize_goal",
    "normalize_income",
    "normalize_recurring",
    "to_day",
    "to_decimal",
    "to_timestamp",
]
