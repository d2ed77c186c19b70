"""
Category Store

Authoritative rules for categories:
- Names are unique
- Reference ids are assigned as max(existing) + 1, starting at 0, from a
  fresh read taken under the write lock
- Renaming never touches the reference id
- Deletion is refused while expenses still reference the category

All writes run under a write lock shared with the Expense Store, so the
dependent-count check and the delete cannot interleave with an expense
creation in this process. Writers in other processes are caught by a
post-insert re-read: a duplicated reference id or name rolls back the
losing insert.
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.errors import (
    DuplicateNameError,
    HasDependentExpensesError,
    NotFoundError,
    ReferenceIdConflictError,
)
from expense_tracker.integrity import ReferentialIntegrityGate
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.category import (
    DEFAULT_CATEGORY_NAMES,
    Category,
    next_reference_id,
)
from expense_tracker.services.storage import CategoryStorageInterface
from expense_tracker.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class CategoryStore:
    """Category operations with uniqueness and integrity rules applied."""

    def __init__(
        self,
        storage: CategoryStorageInterface,
        gate: ReferentialIntegrityGate,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        write_lock: Optional[asyncio.Lock] = None,
    ):
        self._storage = storage
        self._gate = gate
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger
        self._write_lock = write_lock or asyncio.Lock()

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def list_categories(self) -> list[Category]:
        """All categories in store order."""
        return await self._storage.list_categories()

    async def create_category(self, name: str) -> Category:
        """
        Create a category with the next reference id.

        Raises:
            ValidationError: If the name is missing or invalid
            DuplicateNameError: If a category with that name exists
            ReferenceIdConflictError: If a concurrent writer claimed the same id
        """
        name = self._validator.validate_category_name(name)

        async with self._write_lock:
            existing = await self._storage.list_categories()
            if any(category.name == name for category in existing):
                raise DuplicateNameError(name)

            category = Category(
                reference_id=next_reference_id([c.reference_id for c in existing]),
                name=name,
            )
            await self._storage.insert_category(category)
            await self._check_concurrent_insert(category)

        logger.info(
            "category_created",
            category_id=str(category.id),
            reference_id=category.reference_id,
        )
        await self._audit(AuditEventBuilder.category_created(
            category_id=category.id,
            name=category.name,
            reference_id=category.reference_id,
        ))
        return category

    async def _check_concurrent_insert(self, category: Category) -> None:
        """Roll back our insert if another writer got the same id or name first."""
        current = await self._storage.list_categories()
        rivals = [c for c in current if c.id != category.id]

        if any(c.name == category.name for c in rivals):
            await self._storage.delete_category(category.id)
            raise DuplicateNameError(category.name)

        if any(c.reference_id == category.reference_id for c in rivals):
            await self._storage.delete_category(category.id)
            logger.warning(
                "reference_id_conflict",
                reference_id=category.reference_id,
            )
            raise ReferenceIdConflictError(category.reference_id)

    async def rename_category(self, category_id: UUID, new_name: str) -> Category:
        """
        Replace a category's name in place.

        Raises:
            ValidationError: If the new name is invalid
            NotFoundError: If the id is unknown
            DuplicateNameError: If another category already has the name
        """
        new_name = self._validator.validate_category_name(new_name)

        async with self._write_lock:
            category = await self._storage.get_category(category_id)
            if category is None:
                raise NotFoundError("category", category_id)
            if category.name == new_name:
                return category

            clash = await self._storage.find_category_by_name(new_name)
            if clash is not None and clash.id != category.id:
                raise DuplicateNameError(new_name)

            renamed = category.renamed(new_name)
            if not await self._storage.update_category(renamed):
                raise NotFoundError("category", category_id)

        await self._audit(AuditEventBuilder.category_renamed(
            category_id=category.id,
            old_name=category.name,
            new_name=new_name,
        ))
        return renamed

    async def delete_category(self, category_id: UUID) -> Category:
        """
        Permanently remove a category that no expense references.

        Raises:
            NotFoundError: If the id is unknown
            HasDependentExpensesError: If expenses still reference it
        """
        async with self._write_lock:
            category = await self._storage.get_category(category_id)
            if category is None:
                raise NotFoundError("category", category_id)

            try:
                await self._gate.ensure_deletable(category)
            except HasDependentExpensesError as e:
                await self._audit(AuditEventBuilder.category_delete_blocked(
                    category_id=category.id,
                    reference_id=category.reference_id,
                    dependent_count=e.count,
                ))
                raise

            if not await self._storage.delete_category(category_id):
                raise NotFoundError("category", category_id)

        await self._audit(AuditEventBuilder.category_deleted(
            category_id=category.id,
            name=category.name,
            reference_id=category.reference_id,
        ))
        return category

    async def seed_defaults(self, names: Optional[list[str]] = None) -> list[Category]:
        """
        Insert the default categories when the store is empty.

        Returns the inserted categories (empty if the store already had some).
        """
        names = names or DEFAULT_CATEGORY_NAMES

        async with self._write_lock:
            if await self._storage.list_categories():
                return []

            seeded = []
            for reference_id, name in enumerate(names):
                category = Category(reference_id=reference_id, name=name)
                await self._storage.insert_category(category)
                seeded.append(category)

        logger.info("default_categories_inserted", count=len(seeded))
        await self._audit(AuditEventBuilder.categories_seeded([c.name for c in seeded]))
        return seeded
