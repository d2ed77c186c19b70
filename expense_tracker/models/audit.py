"""
Audit Models for Expense Tracker

Every mutation of a category or an expense is logged for audit purposes.
This provides:
1. Traceability of all writes
2. Debugging information when the cache and the store disagree
3. A record of expenses lost through an abandoned edit

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_RENAMED = "category_renamed"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_DELETE_BLOCKED = "category_delete_blocked"
    CATEGORIES_SEEDED = "categories_seeded"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_REPLACED = "expense_replaced"
    EXPENSE_DELETED = "expense_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Edit-as-delete-recreate
    EDIT_STARTED = "edit_started"
    EDIT_RESUBMITTED = "edit_resubmitted"
    EDIT_ABANDONED = "edit_abandoned"

    # Client cache
    PROJECTION_RELOADED = "projection_reloaded"
    PROJECTION_RELOAD_FAILED = "projection_reload_failed"
    STALE_REFERENCE_RETRY = "stale_reference_retry"

    # System events
    SYSTEM_ERROR = "system_error"
    TRANSPORT_ERROR = "transport_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'category', 'expense', 'projection')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one edit)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_kind, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_kind or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.category_created(category_id, "Food", 0)
        event = AuditEventBuilder.edit_abandoned(expense_id, snapshot, correlation_id)
    """

    @staticmethod
    def category_created(
        category_id: UUID,
        name: str,
        reference_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name} (reference {reference_id})",
            details={"name": name, "reference_id": reference_id},
            is_user_action=True,
        )

    @staticmethod
    def category_renamed(
        category_id: UUID,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RENAMED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        category_id: UUID,
        name: str,
        reference_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category deleted: {name}",
            details={"name": name, "reference_id": reference_id},
            is_user_action=True,
        )

    @staticmethod
    def category_delete_blocked(
        category_id: UUID,
        reference_id: int,
        dependent_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category delete blocked by {dependent_count} expenses",
            details={"reference_id": reference_id, "dependent_count": dependent_count},
            error_kind="HasDependentExpenses",
            is_user_action=True,
        )

    @staticmethod
    def categories_seeded(names: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            description=f"Seeded {len(names)} default categories",
            details={"names": names},
        )

    @staticmethod
    def expense_created(
        expense_id: UUID,
        payee: str,
        amount: str,
        reference_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {payee} - ${amount}",
            details={"payee": payee, "amount": amount, "reference_id": reference_id},
            is_user_action=True,
        )

    @staticmethod
    def expense_replaced(
        expense_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REPLACED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense replaced in place",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
            error_kind="ValidationError",
        )

    @staticmethod
    def edit_started(
        expense_id: UUID,
        reference_id: int,
        index: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_STARTED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Edit started: original expense removed pending resubmission",
            details={"reference_id": reference_id, "index": index},
            is_user_action=True,
        )

    @staticmethod
    def edit_resubmitted(
        original_id: UUID,
        new_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_RESUBMITTED,
            entity_type="expense",
            entity_id=new_id,
            correlation_id=correlation_id,
            description="Edit resubmitted as a new expense",
            details={"original_id": str(original_id)},
            is_user_action=True,
        )

    @staticmethod
    def edit_abandoned(
        original_id: UUID,
        original: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_ABANDONED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=original_id,
            correlation_id=correlation_id,
            description="Edit abandoned: original expense permanently lost",
            details={"original": original},
            is_user_action=True,
        )

    @staticmethod
    def projection_reloaded(
        version: int,
        category_count: int,
        expense_count: int,
        dropped_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_RELOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="projection",
            description=f"Projection v{version} rebuilt",
            details={
                "category_count": category_count,
                "expense_count": expense_count,
                "dropped_count": dropped_count,
            },
        )

    @staticmethod
    def projection_reload_failed(
        kept_version: int,
        error_kind: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_RELOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="projection",
            description=f"Reload failed, keeping projection v{kept_version}",
            details={"kept_version": kept_version},
            error_kind=error_kind,
            error_message=error_message,
        )

    @staticmethod
    def stale_reference_retry(
        reference_id: int,
        index: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_REFERENCE_RETRY,
            severity=AuditSeverity.WARNING,
            entity_type="projection",
            correlation_id=correlation_id,
            description="Cached position did not resolve, reloading once",
            details={"reference_id": reference_id, "index": index},
        )

    @staticmethod
    def system_error(
        error_kind: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.TRANSPORT_ERROR
            if error_kind == "TransportError"
            else AuditEventType.SYSTEM_ERROR
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_kind}",
            error_kind=error_kind,
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
