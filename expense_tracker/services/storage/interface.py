"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Swap Google Sheets for another document store later
2. Use in-memory storage for testing and local runs
3. Keep the category/expense rules decoupled from the backend

The interface is intentionally dumb: plain collection operations only.
Referential rules (unique names, reference id assignment, delete blocking)
live in the stores built on top of it.

Implementations translate backend failures into TransportError.
Missing documents are reported through return values (None / False),
never through exceptions.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense


class CategoryStorageInterface(ABC):
    """
    Abstract interface for the categories collection.

    Iteration order is the backend's natural order (insertion order for
    both shipped backends).
    """

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """
        List every stored category.

        Raises:
            TransportError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def get_category(self, category_id: UUID) -> Optional[Category]:
        """
        Retrieve a category by its stable id.

        Returns:
            The category if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_category_by_name(self, name: str) -> Optional[Category]:
        """
        Retrieve a category by exact name.

        Returns:
            The category if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_category(self, category: Category) -> Category:
        """
        Persist a new category document.

        Returns:
            The stored category
        """
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> bool:
        """
        Overwrite the stored document with the same id.

        Returns:
            True if a document was updated, False if the id is unknown
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        """
        Remove a category document.

        Returns:
            True if deleted, False if the id is unknown
        """
        pass


class ExpenseStorageInterface(ABC):
    """Abstract interface for the expenses collection."""

    @abstractmethod
    async def list_expenses(
        self,
        category_reference_id: Optional[int] = None,
    ) -> list[Expense]:
        """
        List expenses, optionally only those of one category.

        Args:
            category_reference_id: Filter by category reference id

        Returns:
            Matching expenses in store order
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by id, or None."""
        pass

    @abstractmethod
    async def count_by_category(self, category_reference_id: int) -> int:
        """Count expenses referencing a category reference id."""
        pass

    @abstractmethod
    async def insert_expense(self, expense: Expense) -> Expense:
        """Persist a new expense document and return it."""
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Overwrite the stored document with the same id.

        Returns:
            True if updated, False if the id is unknown
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """
        Remove an expense document.

        Returns:
            True if deleted, False if the id is unknown
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one edit workflow).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass
