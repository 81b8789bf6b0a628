"""
Document Normalizer

Maps an arbitrary raw document from the remote store (or the local cache,
or a legacy backup) onto the current typed schema of its record kind.

GUARANTEES:
- Total: never raises, whatever the payload looks like
- Pure: the only side effect is a debug log line per coerced field
- Idempotent: normalizing a dumped, normalized record changes nothing
- Lossless: a malformed value becomes a visible default (0, "Other",
  today), it never makes the record disappear

WARNING: Changing field names or aliases here breaks existing user data.
Add a new alias instead of renaming.
"""

import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

from household.audit import get_logger
from household.models.records import (
    ALL,
    LEGACY_CATEGORY_LABELS,
    LEGACY_PAYMENT_METHODS,
    LEGACY_PAYMENT_TYPES,
    RECORD_TYPES,
    Budget,
    Category,
    Debt,
    EntityKind,
    Expense,
    GoalIcon,
    Income,
    PaymentType,
    Period,
    Person,
    RecurringExpense,
    Record,
    SavingsGoal,
    dump_record,
)


logger = get_logger(__name__)

ZERO = Decimal("0")

_MISSING = object()


def _note_default(kind: str, doc_id: str, field: str, value: Any) -> None:
    """Record a NormalizationDefault: a present value replaced by a default."""
    logger.debug(
        "normalization_default",
        kind=kind,
        record_id=doc_id,
        field=field,
        value=repr(value)[:80],
    )


def _pick(raw: Mapping, *names: str) -> Any:
    """
    First present, non-null value among the current name and its aliases.

    The current name comes first so it always wins over a legacy one.
    """
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return _MISSING


# =============================================================================
# FIELD COERCIONS
# =============================================================================

def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a number or numeric string to Decimal.

    Returns None when the value is not usable as an amount. Booleans are
    not numbers here, and neither are NaN or infinities.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except (InvalidOperation, ValueError):
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def to_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce an ISO string, datetime, date or store-native timestamp object
    to an aware UTC datetime.
    """
    if value is None:
        return None
    # Store-native timestamp objects expose to_datetime()
    converter = getattr(value, "to_datetime", None)
    if callable(converter) and not isinstance(value, (datetime, date)):
        try:
            value = converter()
        except Exception:
            return None
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            result = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if result.tzinfo is None:
        return result.replace(tzinfo=timezone.utc)
    # Offsets at the edges of the calendar cannot be shifted to UTC
    try:
        return result.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def to_day(value: Any) -> Optional[date]:
    """Coerce an ISO day string or a timestamp-like value to a calendar day."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10]) if len(text) >= 10 else None
        except ValueError:
            return None
    timestamp = to_timestamp(value)
    return timestamp.date() if timestamp else None


class _FieldReader:
    """
    Reads the fields of one raw document, applying the documented default
    and logging a NormalizationDefault whenever a present value is rejected.
    """

    def __init__(self, kind: str, raw: Mapping, doc_id: str):
        self.kind = kind
        self.raw = raw if isinstance(raw, Mapping) else {}
        self.doc_id = doc_id

    def _rejected(self, field: str, value: Any) -> None:
        if value is not _MISSING:
            _note_default(self.kind, self.doc_id, field, value)

    def amount(self, *names: str) -> Decimal:
        value = _pick(self.raw, *names)
        result = to_decimal(value) if value is not _MISSING else None
        if result is None:
            self._rejected(names[0], value)
            return ZERO
        return result

    def text(self, *names: str, default: str = "") -> str:
        value = _pick(self.raw, *names)
        if value is _MISSING:
            return default
        if isinstance(value, str):
            return value
        return str(value)

    def optional_text(self, name: str) -> Optional[str]:
        value = self.raw.get(name)
        if isinstance(value, str) and value:
            return value
        if value not in (None, ""):
            self._rejected(name, value)
        return None

    def choice(self, name: str, enum_type, default, legacy: Optional[Mapping] = None, *aliases: str):
        value = _pick(self.raw, name, *aliases)
        if isinstance(value, enum_type):
            return value
        if isinstance(value, str):
            try:
                return enum_type(value)
            except ValueError:
                if legacy and value in legacy:
                    return legacy[value]
        self._rejected(name, value)
        return default

    def person_filter(self, name: str) -> Union[Person, str]:
        value = self.raw.get(name, _MISSING)
        if value == ALL:
            return ALL
        return self.choice(name, Person, ALL)

    def category_filter(self, name: str) -> Union[Category, str]:
        value = self.raw.get(name, _MISSING)
        if value == ALL:
            return ALL
        return self.choice(name, Category, ALL, LEGACY_CATEGORY_LABELS)

    def day(self, *names: str) -> date:
        value = _pick(self.raw, *names)
        result = to_day(value) if value is not _MISSING else None
        if result is None:
            self._rejected(names[0], value)
            return date.today()
        return result

    def optional_day(self, name: str) -> Optional[date]:
        value = self.raw.get(name)
        if value in (None, ""):
            return None
        result = to_day(value)
        if result is None:
            self._rejected(name, value)
        return result

    def created_at(self) -> datetime:
        value = self.raw.get("createdAt", _MISSING)
        result = to_timestamp(value) if value is not _MISSING else None
        if result is None:
            self._rejected("createdAt", value)
            return datetime.now(timezone.utc)
        return result

    def updated_at(self) -> Optional[datetime]:
        value = self.raw.get("updatedAt")
        if value is None:
            return None
        result = to_timestamp(value)
        if result is None:
            self._rejected("updatedAt", value)
        return result

    def flag(self, name: str, default: bool) -> bool:
        value = self.raw.get(name, _MISSING)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        self._rejected(name, value)
        return default

    def common(self) -> dict:
        return {
            "id": self.doc_id,
            "created_at": self.created_at(),
            "updated_at": self.updated_at(),
        }


# =============================================================================
# PER-KIND NORMALIZERS
# =============================================================================

def normalize_expense(raw: Mapping, doc_id: str) -> Expense:
    """Expense. Legacy aliases: monto, fecha, descripcion."""
    r = _FieldReader(EntityKind.EXPENSES.value, raw, doc_id)
    return Expense(
        **r.common(),
        amount=r.amount("amount", "monto"),
        description=r.text("description", "descripcion"),
        category=r.choice("category", Category, Category.OTHER, LEGACY_CATEGORY_LABELS),
        card=_card(r),
        brand=r.text("brand"),
        paid_by=r.choice("paidBy", Person, Person.BOYFRIEND),
        entry_date=r.day("date", "fecha"),
        payment_type=_payment_type(r),
        third_party_name=r.optional_text("thirdPartyName"),
    )


def _card(r: _FieldReader) -> str:
    card = r.text("card", default="cash")
    return LEGACY_PAYMENT_METHODS.get(card, card)


def _payment_type(r: _FieldReader) -> Optional[PaymentType]:
    value = r.raw.get("paymentType")
    if value in (None, ""):
        return None
    return r.choice("paymentType", PaymentType, None, LEGACY_PAYMENT_TYPES)


def normalize_income(raw: Mapping, doc_id: str) -> Income:
    """Income. Legacy aliases: monto, fecha, descripcion."""
    r = _FieldReader(EntityKind.INCOMES.value, raw, doc_id)
    return Income(
        **r.common(),
        amount=r.amount("amount", "monto"),
        description=r.text("description", "descripcion"),
        person=r.choice("person", Person, Person.BOYFRIEND),
        entry_date=r.day("date", "fecha"),
    )


def normalize_budget(raw: Mapping, doc_id: str) -> Budget:
    r = _FieldReader(EntityKind.BUDGETS.value, raw, doc_id)
    return Budget(
        **r.common(),
        name=r.text("name"),
        category=r.category_filter("category"),
        person=r.person_filter("person"),
        limit_amount=r.amount("limitAmount"),
        period=r.choice("period", Period, Period.MONTHLY),
    )


def normalize_debt(raw: Mapping, doc_id: str) -> Debt:
    """Debt. Legacy alias: paid."""
    r = _FieldReader(EntityKind.DEBTS.value, raw, doc_id)
    return Debt(
        **r.common(),
        name=r.text("name"),
        total_amount=r.amount("totalAmount"),
        amount_paid=r.amount("amountPaid", "paid"),
        person=r.person_filter("person"),
        due_date=r.optional_day("dueDate"),
        notes=r.optional_text("notes"),
    )


def normalize_recurring(raw: Mapping, doc_id: str) -> RecurringExpense:
    """Recurring expense. Legacy alias: period."""
    r = _FieldReader(EntityKind.RECURRING.value, raw, doc_id)
    return RecurringExpense(
        **r.common(),
        name=r.text("name"),
        amount=r.amount("amount"),
        category=r.choice("category", Category, Category.OTHER, LEGACY_CATEGORY_LABELS),
        person=r.person_filter("person"),
        frequency=r.choice("frequency", Period, Period.MONTHLY, None, "period"),
        start_date=r.day("startDate"),
        active=r.flag("active", True),
    )


def normalize_goal(raw: Mapping, doc_id: str) -> SavingsGoal:
    """Savings goal. Legacy aliases: target, current."""
    r = _FieldReader(EntityKind.GOALS.value, raw, doc_id)
    return SavingsGoal(
        **r.common(),
        name=r.text("name"),
        target_amount=r.amount("targetAmount", "target"),
        current_amount=r.amount("currentAmount", "current"),
        icon=r.choice("icon", GoalIcon, GoalIcon.TARGET),
    )


def normalize_document(
    kind: Union[EntityKind, str],
    raw: Mapping,
    doc_id: str,
) -> Union[Record, dict]:
    """
    Normalize a raw document of the given collection.

    An unrecognized collection name returns the raw document with the id
    merged in, untouched otherwise. A record that is already normalized
    comes back as is (with the given id); one of another kind is read
    from its dumped fields.
    """
    try:
        kind = EntityKind(kind)
    except ValueError:
        if isinstance(raw, Record):
            raw = dump_record(raw)
        return {**(raw if isinstance(raw, Mapping) else {}), "id": doc_id}

    if isinstance(raw, RECORD_TYPES[kind]):
        return raw if raw.id == doc_id else raw.model_copy(update={"id": doc_id})
    if isinstance(raw, Record):
        raw = dump_record(raw)

    match kind:
        case EntityKind.EXPENSES:
            return normalize_expense(raw, doc_id)
        case EntityKind.INCOMES:
            return normalize_income(raw, doc_id)
        case EntityKind.BUDGETS:
            return normalize_budget(raw, doc_id)
        case EntityKind.DEBTS:
            return normalize_debt(raw, doc_id)
        case EntityKind.RECURRING:
            return normalize_recurring(raw, doc_id)
        case EntityKind.GOALS:
            return normalize_goal(raw, doc_id)
