"""
Core Data Models for Household Ledger

These models define the current schema of every record kind stored in
the remote collections. They are designed to:
1. Enforce type safety at runtime
2. Be serializable for the local cache and backup bundles
3. Keep the camelCase field names the remote documents have always used

DESIGN DECISION: Unlike input validation models, these models are lenient.
They describe data that ALREADY exists in storage, possibly written by an
older version of the app. A negative or oversized value is still the user's
data and must stay visible so it can be corrected by hand. Cleaning up is
the normalizer's job, rejecting is nobody's job.
"""

import math
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


DATA_SCHEMA_VERSION = "1.0"


def money_to_json(value: Decimal) -> Union[float, str]:
    """
    A JSON number when the float holds the exact same amount, otherwise
    the decimal string (huge or very precise values, infinities).
    """
    if value.is_finite():
        as_float = float(value)
        if math.isfinite(as_float) and Decimal(repr(as_float)) == value:
            return as_float
    return str(value)


# Money is exact in memory and, when that loses nothing, a plain JSON number
Money = Annotated[
    Decimal,
    PlainSerializer(money_to_json, return_type=Union[float, str], when_used="json"),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntityKind(str, Enum):
    """
    The record kinds, named after the remote collection holding them.

    WARNING: Changing these values breaks existing user data.
    """
    EXPENSES = "expenses"
    INCOMES = "incomes"
    BUDGETS = "budgets"
    DEBTS = "debts"
    RECURRING = "recurring"
    GOALS = "goals"


class Category(str, Enum):
    """Expense categories. The set is fixed."""
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    CLOTHING = "Clothing"
    HEALTH = "Health"
    HOME = "Home"
    EDUCATION = "Education"
    GIFTS = "Gifts"
    SUBSCRIPTIONS = "Subscriptions"
    OTHER = "Other"


# Labels written by the first release of the app
LEGACY_CATEGORY_LABELS: dict[str, Category] = {
    "Comida": Category.FOOD,
    "Transporte": Category.TRANSPORT,
    "Entretenimiento": Category.ENTERTAINMENT,
    "Ropa": Category.CLOTHING,
    "Salud": Category.HEALTH,
    "Hogar": Category.HOME,
    "Educacion": Category.EDUCATION,
    "Regalos": Category.GIFTS,
    "Suscripciones": Category.SUBSCRIPTIONS,
    "Otro": Category.OTHER,
}


class Person(str, Enum):
    """
    The two fixed people of the household.

    The stored values predate display names; see AppSettings.person_names.
    """
    BOYFRIEND = "boyfriend"
    GIRLFRIEND = "girlfriend"


ALL = "all"

PersonFilter = Union[Person, Literal["all"]]
CategoryFilter = Union[Category, Literal["all"]]


class Period(str, Enum):
    """Recurrence of a budget window or a recurring charge."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


# Recurring charges use the same vocabulary
Frequency = Period


class PaymentType(str, Enum):
    """How a card payment was made. Absent means cash or unknown."""
    CREDIT = "credit"
    DEBIT = "debit"


LEGACY_PAYMENT_TYPES: dict[str, PaymentType] = {
    "credito": PaymentType.CREDIT,
    "debito": PaymentType.DEBIT,
}


class GoalIcon(str, Enum):
    """Icon tags the UI knows how to draw for savings goals."""
    CAR = "Car"
    HOME = "Home"
    PLANE = "Plane"
    LAPTOP = "Laptop"
    SMARTPHONE = "Smartphone"
    GRADUATION_CAP = "GraduationCap"
    GEM = "Gem"
    GUITAR = "Guitar"
    PALMTREE = "Palmtree"
    TARGET = "Target"


# Payment method tags suggested by the UI. The field itself is open text.
PAYMENT_METHODS = (
    "cash",
    "santander",
    "bbva",
    "amex",
    "banamex",
    "banorte",
    "transfer",
)

# Payment method tags written by the first release of the app
LEGACY_PAYMENT_METHODS: dict[str, str] = {
    "efectivo": "cash",
    "transferencia": "transfer",
}

DESCRIPTION_MAX_LENGTH = 200


# =============================================================================
# RECORDS
# =============================================================================

class Record(BaseModel):
    """
    Fields every stored record carries.

    The id is assigned by the remote store and never changes.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    id: str = Field(..., description="Store-assigned identifier")
    created_at: datetime = Field(
        ...,
        description="Creation time, monotonic with insertion order"
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        description="Last partial update, if any"
    )


class Expense(Record):
    """A single expense paid by one of the two people."""

    amount: Money = Field(..., description="Amount spent")
    description: str = Field(default="")
    category: Category = Field(default=Category.OTHER)
    card: str = Field(
        default="cash",
        description="Payment method tag, see PAYMENT_METHODS"
    )
    brand: str = Field(default="", description="Merchant or brand")
    paid_by: Person = Field(default=Person.BOYFRIEND)
    entry_date: date = Field(
        ...,
        alias="date",
        description="Calendar day of the expense, independent of created_at"
    )
    payment_type: Optional[PaymentType] = None
    third_party_name: Optional[str] = Field(
        default=None,
        description="Set when the expense was made on behalf of someone else"
    )

    @property
    def is_third_party(self) -> bool:
        return bool(self.third_party_name)


class Income(Record):
    """Money received by one of the two people."""

    amount: Money
    description: str = Field(default="")
    person: Person = Field(default=Person.BOYFRIEND)
    entry_date: date = Field(..., alias="date")


class Budget(Record):
    """
    A spending limit over a recurring period window.

    The window itself is never stored, it is derived from the period
    and today's date (see household.projections.periods).
    """

    name: str = Field(default="")
    category: CategoryFilter = Field(default=ALL)
    person: PersonFilter = Field(default=ALL)
    limit_amount: Money = Field(default=Decimal("0"))
    period: Period = Field(default=Period.MONTHLY)


class Debt(Record):
    """
    Money owed, paid down by explicit contributions.

    amount_paid <= total_amount is a UI convention only. Never rely on it.
    """

    name: str = Field(default="")
    total_amount: Money = Field(default=Decimal("0"))
    amount_paid: Money = Field(default=Decimal("0"))
    person: PersonFilter = Field(default=ALL)
    due_date: Optional[date] = None
    notes: Optional[str] = None


class RecurringExpense(Record):
    """A charge that repeats on a fixed frequency until paused or deleted."""

    name: str = Field(default="")
    amount: Money = Field(default=Decimal("0"))
    category: Category = Field(default=Category.OTHER)
    person: PersonFilter = Field(default=ALL)
    frequency: Frequency = Field(default=Period.MONTHLY)
    start_date: date
    active: bool = Field(default=True)


class SavingsGoal(Record):
    """A savings target, filled by explicit contributions."""

    name: str = Field(default="")
    target_amount: Money = Field(default=Decimal("0"))
    current_amount: Money = Field(default=Decimal("0"))
    icon: GoalIcon = Field(default=GoalIcon.TARGET)


RECORD_TYPES: dict[EntityKind, type[Record]] = {
    EntityKind.EXPENSES: Expense,
    EntityKind.INCOMES: Income,
    EntityKind.BUDGETS: Budget,
    EntityKind.DEBTS: Debt,
    EntityKind.RECURRING: RecurringExpense,
    EntityKind.GOALS: SavingsGoal,
}


def dump_record(record: Record) -> dict:
    """
    Convert a record to the camelCase, JSON-safe dict used by the local
    cache and by backup bundles.

    Optional fields that are not set are left out instead of written as
    null, so "missing" stays "missing" after a round trip.
    """
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)
