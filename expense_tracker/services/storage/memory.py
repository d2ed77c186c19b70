"""
In-Memory Document Store

Backs local runs and the test suite. Collections are insertion-ordered
dicts keyed by stable id, which gives the same iteration order guarantee
as the Google Sheets backend (row order).
"""

from typing import Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
)


class InMemoryDatabase:
    """Holds the collections shared by the in-memory storages."""

    def __init__(self):
        self.categories: dict[UUID, Category] = {}
        self.expenses: dict[UUID, Expense] = {}
        self.audit_events: list[AuditEvent] = []


class InMemoryCategoryStorage(CategoryStorageInterface):

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def list_categories(self) -> list[Category]:
        return list(self._db.categories.values())

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        return self._db.categories.get(category_id)

    async def find_category_by_name(self, name: str) -> Optional[Category]:
        for category in self._db.categories.values():
            if category.name == name:
                return category
        return None

    async def insert_category(self, category: Category) -> Category:
        self._db.categories[category.id] = category
        return category

    async def update_category(self, category: Category) -> bool:
        if category.id not in self._db.categories:
            return False
        self._db.categories[category.id] = category
        return True

    async def delete_category(self, category_id: UUID) -> bool:
        return self._db.categories.pop(category_id, None) is not None


class InMemoryExpenseStorage(ExpenseStorageInterface):

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def list_expenses(
        self,
        category_reference_id: Optional[int] = None,
    ) -> list[Expense]:
        return [
            expense
            for expense in self._db.expenses.values()
            if category_reference_id is None
            or expense.category_reference_id == category_reference_id
        ]

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return self._db.expenses.get(expense_id)

    async def count_by_category(self, category_reference_id: int) -> int:
        return sum(
            1
            for expense in self._db.expenses.values()
            if expense.category_reference_id == category_reference_id
        )

    async def insert_expense(self, expense: Expense) -> Expense:
        self._db.expenses[expense.id] = expense
        return expense

    async def update_expense(self, expense: Expense) -> bool:
        if expense.id not in self._db.expenses:
            return False
        self._db.expenses[expense.id] = expense
        return True

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._db.expenses.pop(expense_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def append_event(self, event: AuditEvent) -> bool:
        self._db.audit_events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._db.audit_events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._db.audit_events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
