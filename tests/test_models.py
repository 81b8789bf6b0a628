"""
Tests for Household Ledger models and configuration

Test strategy:
1. Unit tests for individual components (models, settings, audit)
2. Integration tests for flows (with the in-memory store)
3. No real API calls in tests (use mocks)
"""

import json

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from household.audit import AuditLogger
from household.config import AppSettings, CacheSettings, SyncSettings, validate_all_settings
from household.models.analytics import PeriodWindow, RatioReport, RatioStatus
from household.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from household.models.records import (
    ALL,
    Budget,
    Category,
    EntityKind,
    Expense,
    Person,
    SavingsGoal,
    dump_record,
    money_to_json,
)
from household.normalization import normalize_document


CREATED = datetime(2026, 9, 1, 12, 0, tzinfo=timezone.utc)


class TestRecordModels:
    """Tests for the stored record models."""

    def test_expense_accepts_camel_case_aliases(self):
        """Test that stored camelCase names populate the fields."""
        expense = Expense.model_validate({
            "id": "e1",
            "createdAt": CREATED,
            "amount": "120.50",
            "paidBy": "girlfriend",
            "date": "2026-09-03",
            "thirdPartyName": "Luis",
        })
        assert expense.amount == Decimal("120.50")
        assert expense.paid_by == Person.GIRLFRIEND
        assert expense.entry_date == date(2026, 9, 3)
        assert expense.is_third_party

    def test_expense_defaults(self):
        """Test defaults of optional expense fields."""
        expense = Expense(id="e1", created_at=CREATED, amount=Decimal("1"), entry_date=date(2026, 9, 1))
        assert expense.category == Category.OTHER
        assert expense.card == "cash"
        assert expense.payment_type is None
        assert not expense.is_third_party

    def test_dump_record_leaves_out_unset_optionals(self):
        """Test that None fields are omitted rather than written as null."""
        expense = Expense(id="e1", created_at=CREATED, amount=Decimal("10"), entry_date=date(2026, 9, 1))
        dumped = dump_record(expense)
        assert "paymentType" not in dumped
        assert "thirdPartyName" not in dumped
        assert "updatedAt" not in dumped

    def test_dump_record_writes_money_as_number(self):
        """Test that Decimal amounts become plain JSON numbers."""
        goal = SavingsGoal(
            id="g1",
            created_at=CREATED,
            target_amount=Decimal("5000"),
            current_amount=Decimal("1250.5"),
        )
        dumped = dump_record(goal)
        assert dumped["targetAmount"] == 5000.0
        assert dumped["currentAmount"] == 1250.5
        assert dumped["icon"] == "Target"

    @pytest.mark.parametrize("amount", [
        "12345678901234567890.123456789",
        "1E+400",
        "0.1000000000000000055511151231257827",
    ])
    def test_amounts_a_float_cannot_hold_survive_a_round_trip(self, amount):
        """Test that such amounts are written as decimal strings and read back exactly."""
        expense = Expense(id="e1", created_at=CREATED, amount=Decimal(amount), entry_date=date(2026, 9, 1))
        dumped = dump_record(expense)
        assert isinstance(dumped["amount"], str)
        restored = normalize_document(EntityKind.EXPENSES, json.loads(json.dumps(dumped)), "e1")
        assert restored.amount == Decimal(amount)

    @pytest.mark.parametrize("amount,expected", [
        ("75", 75.0),
        ("0.1", 0.1),
        ("-20.25", -20.25),
    ])
    def test_money_to_json_prefers_numbers(self, amount, expected):
        assert money_to_json(Decimal(amount)) == expected
        assert money_to_json(Decimal("Infinity")) == "Infinity"

    def test_budget_filters_default_to_all(self):
        """Test that budgets without filters cover everything."""
        budget = Budget(id="b1", created_at=CREATED)
        assert budget.category == ALL
        assert budget.person == ALL

    def test_models_keep_negative_amounts(self):
        """Test that stored data is never rejected for its value."""
        expense = Expense(id="e1", created_at=CREATED, amount=Decimal("-5"), entry_date=date(2026, 9, 1))
        assert expense.amount == Decimal("-5")


class TestAnalyticsModels:
    """Tests for projection result models."""

    def test_period_window_days_are_inclusive(self):
        window = PeriodWindow(start=date(2026, 9, 1), end=date(2026, 9, 30))
        assert window.days == 30
        assert window.contains(date(2026, 9, 30))
        assert not window.contains(date(2026, 10, 1))

    def test_ratio_percent_is_capped(self):
        """Test that the gauge never fills past 120%."""
        report = RatioReport(
            total_income=Decimal("100"),
            total_expense=Decimal("300"),
            ratio=3.0,
            status=RatioStatus.DANGER,
        )
        assert report.percent == 120.0


class TestAuditModels:
    """Tests for audit event models."""

    def test_snapshot_applied_event(self):
        event = AuditEventBuilder.snapshot_applied("expenses", 12)
        assert event.event_type == AuditEventType.SNAPSHOT_APPLIED
        assert event.collection == "expenses"
        assert event.details["record_count"] == 12

    def test_subscription_error_is_a_warning(self):
        event = AuditEventBuilder.subscription_error("goals", RuntimeError("offline"))
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "offline"

    def test_write_failed_is_an_error(self):
        event = AuditEventBuilder.write_failed("expenses", "add", RuntimeError("boom"))
        assert event.severity == AuditSeverity.ERROR
        assert event.details["operation"] == "add"

    def test_log_dict_is_serializable(self):
        """Test that to_log_dict() only holds plain values."""
        event = AuditEventBuilder.record_written("debts", "update", "d1")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == AuditEventType.RECORD_UPDATED.value
        assert log_dict["record_id"] == "d1"
        assert isinstance(log_dict["timestamp"], str)


class TestAuditLogger:
    """Tests for the in-memory audit history."""

    def test_recent_events_newest_first(self):
        logger = AuditLogger(history_size=10)
        logger.log(AuditEventBuilder.snapshot_applied("expenses", 1))
        logger.log(AuditEventBuilder.snapshot_applied("goals", 2))
        events = logger.recent_events()
        assert [e.collection for e in events] == ["goals", "expenses"]

    def test_history_is_bounded(self):
        logger = AuditLogger(history_size=10)
        for count in range(25):
            logger.log(AuditEventBuilder.snapshot_applied("expenses", count))
        events = logger.recent_events(limit=100)
        assert len(events) == 10
        assert events[0].details["record_count"] == 24

    def test_filter_by_collection(self):
        logger = AuditLogger()
        logger.log(AuditEventBuilder.collection_closed("expenses"))
        logger.log(AuditEventBuilder.collection_closed("goals"))
        events = logger.recent_events(collection="goals")
        assert len(events) == 1
        assert isinstance(events[0], AuditEvent)


class TestSettings:
    """Tests for configuration models."""

    def test_sync_defaults(self):
        settings = SyncSettings()
        assert settings.retry_delay_seconds == 3.0
        assert settings.retry_max_delay_seconds == 60.0

    def test_sync_ceiling_below_delay_rejected(self):
        """Test that the backoff ceiling cannot undercut the first delay."""
        with pytest.raises(ValidationError):
            SyncSettings(retry_delay_seconds=10, retry_max_delay_seconds=5)

    def test_sync_reads_environment(self, monkeypatch):
        monkeypatch.setenv("HOUSEHOLD_SYNC_RETRY_DELAY_SECONDS", "1.5")
        assert SyncSettings().retry_delay_seconds == 1.5

    def test_cache_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOUSEHOLD_CACHE_DIRECTORY", str(tmp_path))
        assert CacheSettings().path == tmp_path

    def test_person_names(self):
        settings = AppSettings(first_person_name="Ana", second_person_name="Bea")
        assert settings.person_names == {"boyfriend": "Ana", "girlfriend": "Bea"}

    def test_validate_all_settings_reports_missing_sheet(self, monkeypatch, tmp_path):
        """Test that a missing Sheets block is reported without hiding the others."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["sync"] is True
        assert results["cache"] is True
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
