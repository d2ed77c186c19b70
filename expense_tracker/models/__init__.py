"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

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
from expense_tracker.models.projection import ProjectionSnapshot
from expense_tracker.models.validation import ValidationIssue
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Category models
    "DEFAULT_CATEGORY_NAMES",
    "Category",
    "next_reference_id",
    # Expense models
    "Expense",
    "ExpenseInput",
    "format_amount",
    "normalize_amount",
    "to_decimal",
    # Projection
    "ProjectionSnapshot",
    # Validation
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
