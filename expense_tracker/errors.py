"""
Error Kinds for Expense Tracker

Every failure surfaced to a caller belongs to exactly one kind.
The kind is part of the message so the UI can show distinguishable errors
without inspecting exception types.

Propagation policy:
- Stores fail fast with a specific kind
- Flows retry once for StaleReference only, everything else is surfaced unmodified
- Transport failures are never retried on writes (no idempotency keys)
"""

from typing import Any, Optional


class ExpenseTrackerError(Exception):
    """Base exception for all expense tracker failures."""

    kind = "ExpenseTrackerError"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        text = f"{self.kind}: {self.message}"
        if self.cause is not None:
            text += f" (cause: {self.cause})"
        return text

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and audit details."""
        return {"kind": self.kind, "error": self.message}


class ValidationError(ExpenseTrackerError):
    """Input has the wrong shape or is out of range."""

    kind = "ValidationError"

    def __init__(self, message: str, issues: Optional[list] = None):
        self.issues = issues or []
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["issues"] = [issue.model_dump() for issue in self.issues]
        return data


class DuplicateNameError(ExpenseTrackerError):
    """A category with this name already exists."""

    kind = "DuplicateName"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Category already exists: {name!r}")


class NotFoundError(ExpenseTrackerError):
    """Entity not found in storage."""

    kind = "NotFound"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")


class HasDependentExpensesError(ExpenseTrackerError):
    """Category deletion blocked by expenses that still reference it."""

    kind = "HasDependentExpenses"

    def __init__(self, reference_id: int, count: int):
        self.reference_id = reference_id
        self.count = count
        super().__init__(f"Category has {count} associated expenses")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["count"] = self.count
        return data


class StaleReferenceError(ExpenseTrackerError):
    """A (category, index) pair no longer resolves in the projection."""

    kind = "StaleReference"

    def __init__(self, reference_id: int, index: int):
        self.reference_id = reference_id
        self.index = index
        super().__init__(
            f"Expense not found after refresh (category {reference_id}, index {index})"
        )


class TransportError(ExpenseTrackerError):
    """Network or storage backend failure. The cause is opaque to callers."""

    kind = "TransportError"


class ReferenceIdConflictError(TransportError):
    """Two concurrent category creations were assigned the same reference id."""

    def __init__(self, reference_id: int):
        self.reference_id = reference_id
        super().__init__(
            f"Concurrent category creation claimed reference id {reference_id}; "
            "the losing insert was rolled back"
        )
