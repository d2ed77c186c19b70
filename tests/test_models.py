"""
Tests for Expense Tracker models

Test strategy:
1. Unit tests for the Pydantic models and amount helpers
2. Store, projection and workflow tests run against the in-memory backend
3. No real Google Sheets calls in tests (fakes only)
"""

import asyncio
import json
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from expense_tracker.audit import AuditLogger
from expense_tracker.errors import (
    HasDependentExpensesError,
    NotFoundError,
    ReferenceIdConflictError,
    TransportError,
    ValidationError,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from expense_tracker.models.category import (
    DEFAULT_CATEGORY_NAMES,
    Category,
    next_reference_id,
)
from expense_tracker.models.expense import (
    Expense,
    ExpenseInput,
    format_amount,
    normalize_amount,
    to_decimal,
)
from expense_tracker.models.validation import ValidationIssue
from expense_tracker.services.storage import InMemoryAuditStorage, InMemoryDatabase


class TestCategoryModels:
    """Tests for the Category model."""

    def test_category_creation(self):
        """Test Category creation with a generated id."""
        category = Category(reference_id=0, name="Food")
        assert category.reference_id == 0
        assert category.name == "Food"
        assert category.id is not None

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        category = Category(reference_id=1, name="  Travel  ")
        assert category.name == "Travel"

    def test_category_rejects_negative_reference_id(self):
        """Reference ids start at 0."""
        with pytest.raises(PydanticValidationError):
            Category(reference_id=-1, name="Food")

    def test_category_populates_by_alias(self):
        """Stored documents use referenceId."""
        category = Category(referenceId=4, name="Tax")
        assert category.reference_id == 4

    def test_renamed_keeps_identifiers(self):
        """Renaming never touches id or reference id."""
        category = Category(reference_id=3, name="Food")
        renamed = category.renamed("Groceries")
        assert renamed.id == category.id
        assert renamed.reference_id == 3
        assert renamed.name == "Groceries"
        assert category.name == "Food"

    def test_to_api_dict(self):
        category = Category(reference_id=2, name="Family")
        data = category.to_api_dict()
        assert data == {"id": str(category.id), "referenceId": 2, "name": "Family"}

    def test_next_reference_id(self):
        """Test max + 1 assignment starting at 0."""
        assert next_reference_id([]) == 0
        assert next_reference_id([0, 1, 2]) == 3
        assert next_reference_id([5, 2]) == 6

    def test_default_category_names(self):
        """Fifteen distinct defaults."""
        assert len(DEFAULT_CATEGORY_NAMES) == 15
        assert len(set(DEFAULT_CATEGORY_NAMES)) == 15
        assert "Food" in DEFAULT_CATEGORY_NAMES


class TestAmountHelpers:
    """Tests for amount parsing and normalization."""

    def test_to_decimal_from_float_uses_shortest_repr(self):
        assert to_decimal(12.345) == Decimal("12.345")

    def test_to_decimal_from_string(self):
        assert to_decimal(" 7.5 ") == Decimal("7.5")

    def test_to_decimal_rejects_junk(self):
        assert to_decimal("abc") is None
        assert to_decimal(None) is None
        assert to_decimal(True) is None

    def test_normalize_amount_half_up(self):
        """12.345 rounds to 12.35."""
        assert normalize_amount(Decimal("12.345")) == Decimal("12.35")
        assert normalize_amount(Decimal("0.005")) == Decimal("0.01")

    def test_normalize_amount_half_even(self):
        assert normalize_amount(Decimal("12.345"), "half_even") == Decimal("12.34")

    def test_format_amount(self):
        assert format_amount(Decimal("10")) == "10.00"
        assert format_amount(Decimal("3.5")) == "3.50"


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_expense_input_rejects_zero_amount(self):
        """Test that zero amounts are rejected."""
        with pytest.raises(PydanticValidationError):
            ExpenseInput(
                description="Lunch",
                amount=Decimal("0.00"),
                payee="Cafe",
                category_reference_id=0,
            )

    def test_expense_from_input(self):
        fields = ExpenseInput(
            description="Lunch",
            amount=Decimal("12.50"),
            payee="Cafe",
            category_reference_id=3,
        )
        expense = Expense.from_input(fields)
        assert expense.description == "Lunch"
        assert expense.amount == Decimal("12.50")
        assert expense.category_reference_id == 3
        assert expense.created_at is not None

    def test_replaced_with_keeps_id_and_created_at(self):
        """A full replace keeps the identity and the creation time."""
        expense = Expense(
            description="Lunch",
            amount=Decimal("12.50"),
            payee="Cafe",
            category_reference_id=3,
        )
        fields = ExpenseInput(
            description="Dinner",
            amount=Decimal("30.00"),
            payee="Bistro",
            category_reference_id=4,
        )
        replaced = expense.replaced_with(fields)
        assert replaced.id == expense.id
        assert replaced.created_at == expense.created_at
        assert replaced.description == "Dinner"
        assert replaced.category_reference_id == 4

    def test_to_api_dict_transmits_amount_as_string(self):
        expense = Expense(
            description="Lunch",
            amount=Decimal("10"),
            payee="Cafe",
            category_reference_id=0,
        )
        data = expense.to_api_dict()
        assert data["amount"] == "10.00"
        assert data["categoryId"] == 0
        assert data["createdAt"] == expense.created_at.isoformat()
        assert json.dumps(data)

    def test_expense_populates_by_alias(self):
        expense = Expense(
            description="Lunch",
            amount="8.25",
            payee="Cafe",
            categoryId=2,
        )
        assert expense.category_reference_id == 2
        assert expense.amount_str == "8.25"


class TestErrorKinds:
    """Every surfaced error carries its kind in the message."""

    def test_not_found_message(self):
        error = NotFoundError("category", "abc")
        assert str(error) == "NotFound: Category not found: abc"
        assert error.to_dict() == {"kind": "NotFound", "error": "Category not found: abc"}

    def test_has_dependent_expenses_carries_count(self):
        error = HasDependentExpensesError(reference_id=3, count=2)
        assert error.count == 2
        assert error.to_dict()["count"] == 2
        assert str(error).startswith("HasDependentExpenses:")

    def test_validation_error_lists_issues(self):
        issue = ValidationIssue(
            field="payee",
            issue_type="missing",
            message="Payee is required",
            severity="error",
        )
        error = ValidationError("Payee is required", issues=[issue])
        assert error.to_dict()["issues"][0]["field"] == "payee"

    def test_transport_error_includes_cause(self):
        error = TransportError("Failed to load expenses", cause=ConnectionError("down"))
        assert "cause: down" in str(error)

    def test_reference_id_conflict_is_transport_error(self):
        error = ReferenceIdConflictError(5)
        assert isinstance(error, TransportError)
        assert error.kind == "TransportError"


class TestValidationIssue:
    """Tests for ValidationIssue."""

    def test_severity_must_be_known(self):
        with pytest.raises(PydanticValidationError):
            ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="bad",
                severity="fatal",
            )

    def test_only_errors_block(self):
        def issue(severity):
            return ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="check",
                severity=severity,
            )

        assert issue("error").is_blocking
        assert not issue("warning").is_blocking
        assert not issue("info").is_blocking


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            description="Category created",
        )
        assert event.event_type == AuditEventType.CATEGORY_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Expense created",
            details={"payee": "Cafe", "amount": "10.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expense_created"
        assert log_dict["details"]["payee"] == "Cafe"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.EDIT_STARTED,
            description="Edit started",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "edit_started"
        assert row[11] == "True"

    def test_audit_event_builder_edit_abandoned(self):
        """An abandoned edit is a warning and keeps the lost record."""
        expense_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.edit_abandoned(
            original_id=expense_id,
            original={"description": "Lunch"},
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.EDIT_ABANDONED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == expense_id
        assert event.correlation_id == correlation_id
        assert event.details["original"]["description"] == "Lunch"

    def test_audit_event_builder_system_error_transport(self):
        event = AuditEventBuilder.system_error(
            error_kind="TransportError",
            error_message="Failed to load expenses",
        )
        assert event.event_type == AuditEventType.TRANSPORT_ERROR
        assert event.severity == AuditSeverity.ERROR


class BrokenAuditStorage(InMemoryAuditStorage):

    async def append_event(self, event):
        raise ConnectionError("sheet unavailable")


class TestAuditLogger:
    """Audit failures never break the caller."""

    def test_log_persists_event(self):
        db = InMemoryDatabase()
        audit_logger = AuditLogger(InMemoryAuditStorage(db))
        event = AuditEventBuilder.categories_seeded(["Food"])

        assert asyncio.run(audit_logger.log(event)) is True
        assert db.audit_events == [event]

    def test_storage_failure_returns_false(self):
        audit_logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.categories_seeded(["Food"])
        assert asyncio.run(audit_logger.log(event)) is False

    def test_log_error_records_kind_and_cause(self):
        db = InMemoryDatabase()
        audit_logger = AuditLogger(InMemoryAuditStorage(db))
        error = TransportError("Failed to save expense", cause=TimeoutError("slow"))

        asyncio.run(audit_logger.log_error(error, details={"path": "/expenses"}))

        event = db.audit_events[0]
        assert event.event_type == AuditEventType.TRANSPORT_ERROR
        assert event.error_kind == "TransportError"
        assert event.details["path"] == "/expenses"
        assert "slow" in event.details["cause"]

    def test_recent_events_without_storage(self):
        assert asyncio.run(AuditLogger().recent_events()) == []
