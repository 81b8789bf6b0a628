"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
All data flowing out of the sync layer conforms to these schemas.
"""

from household.models.records import (
    ALL,
    DATA_SCHEMA_VERSION,
    PAYMENT_METHODS,
    RECORD_TYPES,
    Budget,
    Category,
    Debt,
    EntityKind,
    Expense,
    Frequency,
    GoalIcon,
    Income,
    PaymentType,
    Period,
    Person,
    Record,
    RecurringExpense,
    SavingsGoal,
    dump_record,
    money_to_json,
)
from household.models.analytics import (
    BudgetProjection,
    CategoryTotal,
    GoalProjection,
    PeriodWindow,
    PersonRatio,
    RatioReport,
    RatioStatus,
)
from household.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "ALL",
    "DATA_SCHEMA_VERSION",
    "PAYMENT_METHODS",
    "RECORD_TYPES",
    "Budget",
    "Category",
    "Debt",
    "EntityKind",
    "Expense",
    "Frequency",
    "GoalIcon",
    "Income",
    "PaymentType",
    "Period",
    "Person",
    "Record",
    "RecurringExpense",
    "SavingsGoal",
    "dump_record",
    "money_to_json",
    # Analytics
    "BudgetProjection",
    "CategoryTotal",
    "GoalProjection",
    "PeriodWindow",
    "PersonRatio",
    "RatioReport",
    "RatioStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
