"""
Expense Store

Expenses are leaves: deleting one needs no dependent checks. Creating or
replacing one validates every field, normalizes the amount to 2 decimals
and requires the category reference id to resolve to a live category at
write time.
"""

import asyncio
from typing import Any, Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.errors import NotFoundError, ValidationError
from expense_tracker.integrity import ReferentialIntegrityGate
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.expense import Expense, ExpenseInput
from expense_tracker.services.storage import ExpenseStorageInterface
from expense_tracker.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class ExpenseStore:
    """Expense operations with validation and reference checks applied."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
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

    async def _validate(
        self,
        description: Any,
        amount: Any,
        payee: Any,
        category_reference_id: Any,
    ) -> ExpenseInput:
        try:
            fields, _ = self._validator.validate_expense(
                description=description,
                amount=amount,
                payee=payee,
                category_reference_id=category_reference_id,
            )
        except ValidationError as e:
            await self._audit(AuditEventBuilder.validation_failed(
                entity_type="expense",
                issues=[issue.model_dump() for issue in e.issues],
            ))
            raise
        return fields

    async def list_expenses(
        self,
        category_reference_id: Optional[int] = None,
    ) -> list[Expense]:
        """All expenses, or only those of one category reference id."""
        return await self._storage.list_expenses(category_reference_id)

    async def get_expense(self, expense_id: UUID) -> Expense:
        """
        Raises:
            NotFoundError: If the id is unknown
        """
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)
        return expense

    async def create_expense(
        self,
        description: Any,
        amount: Any,
        payee: Any,
        category_reference_id: Any,
    ) -> Expense:
        """
        Validate, normalize and persist a new expense.

        Raises:
            ValidationError: If any field is invalid or the category is unknown
        """
        fields = await self._validate(description, amount, payee, category_reference_id)

        async with self._write_lock:
            await self._gate.ensure_reference_exists(fields.category_reference_id)
            expense = await self._storage.insert_expense(Expense.from_input(fields))

        logger.info(
            "expense_created",
            expense_id=str(expense.id),
            reference_id=expense.category_reference_id,
        )
        await self._audit(AuditEventBuilder.expense_created(
            expense_id=expense.id,
            payee=expense.payee,
            amount=expense.amount_str,
            reference_id=expense.category_reference_id,
        ))
        return expense

    async def replace_expense(
        self,
        expense_id: UUID,
        description: Any,
        amount: Any,
        payee: Any,
        category_reference_id: Any,
    ) -> Expense:
        """
        Overwrite every mutable field of an existing expense.

        This is a full replace, not a merge: all four fields are required.
        The id and creation timestamp are kept.

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If any field is invalid or the category is unknown
        """
        await self.get_expense(expense_id)
        fields = await self._validate(description, amount, payee, category_reference_id)

        async with self._write_lock:
            current = await self._storage.get_expense(expense_id)
            if current is None:
                raise NotFoundError("expense", expense_id)
            await self._gate.ensure_reference_exists(fields.category_reference_id)

            updated = current.replaced_with(fields)
            if not await self._storage.update_expense(updated):
                raise NotFoundError("expense", expense_id)

        await self._audit(AuditEventBuilder.expense_replaced(
            expense_id=updated.id,
            amount=updated.amount_str,
        ))
        return updated

    async def delete_expense(self, expense_id: UUID) -> None:
        """
        Permanently remove an expense.

        Raises:
            NotFoundError: If the id is unknown
        """
        async with self._write_lock:
            deleted = await self._storage.delete_expense(expense_id)
        if not deleted:
            raise NotFoundError("expense", expense_id)

        logger.info("expense_deleted", expense_id=str(expense_id))
        await self._audit(AuditEventBuilder.expense_deleted(expense_id=expense_id))
