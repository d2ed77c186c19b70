"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the document store.
The in-memory backend is the default; Google Sheets is the hosted backend.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
)
from expense_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryExpenseStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ExpenseStorageInterface",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryDatabase",
    "InMemoryExpenseStorage",
]
