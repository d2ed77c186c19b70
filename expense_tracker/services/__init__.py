"""Services package."""

from expense_tracker.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryExpenseStorage,
)

__all__ = [
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ExpenseStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryDatabase",
    "InMemoryExpenseStorage",
]
