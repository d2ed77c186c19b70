"""Category and expense stores."""

from expense_tracker.stores.category_store import CategoryStore
from expense_tracker.stores.expense_store import ExpenseStore

__all__ = ["CategoryStore", "ExpenseStore"]
