"""
Referential Integrity Gate

Policy layer consulted by the stores:
- A category may be deleted only while no expense references its reference id
- An expense may be written only against a live category reference id

The gate itself holds no lock. Callers that need the check and the write to
be one step (category delete, expense create) run both under the shared
store write lock.
"""

import structlog

from expense_tracker.errors import HasDependentExpensesError, ValidationError
from expense_tracker.models.category import Category
from expense_tracker.models.validation import ValidationIssue
from expense_tracker.services.storage import (
    CategoryStorageInterface,
    ExpenseStorageInterface,
)


logger = structlog.get_logger(__name__)


class ReferentialIntegrityGate:
    """Point-in-time reference checks between categories and expenses."""

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        expense_storage: ExpenseStorageInterface,
    ):
        self._categories = category_storage
        self._expenses = expense_storage

    async def dependent_count(self, reference_id: int) -> int:
        """Number of expenses whose category reference id matches."""
        return await self._expenses.count_by_category(reference_id)

    async def ensure_deletable(self, category: Category) -> None:
        """
        Raises:
            HasDependentExpensesError: If any expense references the category
        """
        count = await self.dependent_count(category.reference_id)
        if count > 0:
            logger.info(
                "category_delete_blocked",
                category_id=str(category.id),
                reference_id=category.reference_id,
                dependent_count=count,
            )
            raise HasDependentExpensesError(category.reference_id, count)

    async def ensure_reference_exists(self, reference_id: int) -> Category:
        """
        Resolve a category reference id to a live category.

        Raises:
            ValidationError: If no category carries this reference id
        """
        for category in await self._categories.list_categories():
            if category.reference_id == reference_id:
                return category

        issue = ValidationIssue(
            field="category_reference_id",
            issue_type="unknown_category",
            message=f"No category with reference id {reference_id}",
            severity="error",
            suggested_fix="Reload categories and pick one from the list",
        )
        raise ValidationError(issue.message, issues=[issue])
