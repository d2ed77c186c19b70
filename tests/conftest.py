"""Shared fixtures: in-memory components, no default categories."""

import pytest

from expense_tracker.orchestrator import AppComponents
from expense_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryExpenseStorage,
)


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def components(db):
    return AppComponents(
        category_storage=InMemoryCategoryStorage(db),
        expense_storage=InMemoryExpenseStorage(db),
        audit_storage=InMemoryAuditStorage(db),
    )
