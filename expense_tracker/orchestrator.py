"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
client-side flows:
1. Category management (add → reload, rename → reload, delete → reload)
2. Expense management (add → reload, remove by cached position → reload)
3. Edit-as-delete-recreate (resolve → populate → remove → resubmit | abandon)

DESIGN DECISION: The orchestrator enforces the cache rules:
- Every successful mutation is followed by a full reload
- A cached (category, index) pair that no longer resolves triggers exactly
  one reload and one retry, then StaleReferenceError
- Errors from the stores are surfaced unmodified; nothing else is retried
"""

import asyncio
from enum import Enum
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings
from expense_tracker.errors import NotFoundError, StaleReferenceError, ValidationError
from expense_tracker.integrity import ReferentialIntegrityGate
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense
from expense_tracker.models.validation import ValidationIssue
from expense_tracker.projection import CacheProjector
from expense_tracker.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryExpenseStorage,
)
from expense_tracker.stores import CategoryStore, ExpenseStore
from expense_tracker.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class CategoryFlow:
    """Category add/rename/delete followed by a reload of the projection."""

    def __init__(
        self,
        category_store: CategoryStore,
        projector: CacheProjector,
    ):
        self._store = category_store
        self._projector = projector

    async def add_category(self, name: str) -> Category:
        category = await self._store.create_category(name)
        await self._projector.reload()
        return category

    async def rename_category(self, category_id: UUID, new_name: str) -> Category:
        category = await self._store.rename_category(category_id, new_name)
        await self._projector.reload()
        return category

    async def delete_category(self, category_id: UUID) -> Category:
        category = await self._store.delete_category(category_id)
        await self._projector.reload()
        return category


class EditState(str, Enum):
    """Lifecycle of one edit attempt."""
    PENDING = "pending"          # Original removed, waiting for resubmission
    RESUBMITTED = "resubmitted"  # New record created
    ABANDONED = "abandoned"      # Original permanently lost


class PendingEdit(BaseModel):
    """
    An edit in progress.

    By the time the caller holds one of these, the original expense is
    already gone from the store. Only resubmit_edit brings the values back,
    as a new record with a new id and a new creation time.
    """
    model_config = ConfigDict(frozen=True)

    original: Expense
    correlation_id: UUID = Field(default_factory=create_correlation_id)
    state: EditState = EditState.PENDING

    @property
    def draft(self) -> dict[str, Any]:
        """Form values populated from the original record."""
        return {
            "description": self.original.description,
            "amount": self.original.amount_str,
            "payee": self.original.payee,
            "category_reference_id": self.original.category_reference_id,
        }


class ExpenseFlow:
    """
    Expense add/remove and the edit-as-delete-recreate workflow.

    Editing is destructive: begin_edit deletes the original right away, and
    the edited values are later written through the normal add path. If the
    user never resubmits, the original is lost. That is the expected
    behavior of this workflow; use ExpenseStore.replace_expense for an
    in-place update.
    """

    def __init__(
        self,
        expense_store: ExpenseStore,
        projector: CacheProjector,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = expense_store
        self._projector = projector
        self._audit_logger = audit_logger

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def add_expense(
        self,
        description: Any,
        amount: Any,
        payee: Any,
        category_reference_id: Any,
    ) -> Expense:
        expense = await self._store.create_expense(
            description=description,
            amount=amount,
            payee=payee,
            category_reference_id=category_reference_id,
        )
        await self._projector.reload()
        return expense

    def _locate(self, key: int, index: int, by_position: bool) -> Optional[Expense]:
        if by_position:
            return self._projector.lookup_at(key, index)
        return self._projector.lookup(key, index)

    async def _take(
        self,
        key: int,
        index: int,
        by_position: bool,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Resolve a cached (category, index) pair and delete that expense.

        `key` is a category reference id, or a list position when
        `by_position` is set. A pair that does not resolve, or resolves to
        a record the store no longer has, counts as stale: one reload and
        one retry, then StaleReferenceError.
        """
        expense = self._locate(key, index, by_position)
        if expense is not None:
            try:
                await self._store.delete_expense(expense.id)
                return expense
            except NotFoundError:
                pass

        await self._audit(AuditEventBuilder.stale_reference_retry(
            reference_id=key,
            index=index,
            correlation_id=correlation_id,
        ))
        await self._projector.reload()

        expense = self._locate(key, index, by_position)
        if expense is None:
            raise StaleReferenceError(key, index)
        try:
            await self._store.delete_expense(expense.id)
        except NotFoundError as e:
            raise StaleReferenceError(key, index) from e
        return expense

    async def remove_expense(
        self,
        key: int,
        index: int,
        by_position: bool = False,
    ) -> Expense:
        """
        Delete the expense shown at (category, index).

        Raises:
            StaleReferenceError: If the pair does not resolve even after a reload
        """
        expense = await self._take(key, index, by_position)
        await self._projector.reload()
        return expense

    async def begin_edit(
        self,
        key: int,
        index: int,
        by_position: bool = False,
    ) -> PendingEdit:
        """
        Start editing the expense shown at (category, index).

        Resolves the expense, deletes the original from the store and
        returns its fields as a PendingEdit.

        Raises:
            StaleReferenceError: If the pair does not resolve even after a reload
        """
        correlation_id = create_correlation_id()
        expense = await self._take(key, index, by_position, correlation_id)

        pending = PendingEdit(original=expense, correlation_id=correlation_id)
        await self._audit(AuditEventBuilder.edit_started(
            expense_id=expense.id,
            reference_id=expense.category_reference_id,
            index=index,
            correlation_id=correlation_id,
        ))
        await self._projector.reload()
        return pending

    def _ensure_pending(self, pending: PendingEdit) -> None:
        if pending.state != EditState.PENDING:
            issue = ValidationIssue(
                field="edit",
                issue_type="invalid_state",
                message=f"Edit already {pending.state.value}",
                severity="error",
            )
            raise ValidationError(issue.message, issues=[issue])

    async def resubmit_edit(
        self,
        pending: PendingEdit,
        description: Any = None,
        amount: Any = None,
        payee: Any = None,
        category_reference_id: Any = None,
    ) -> tuple[PendingEdit, Expense]:
        """
        Create the edited expense. Omitted fields keep the original values.

        Returns:
            (resubmitted_edit, new_expense)

        Raises:
            ValidationError: If the edited values are invalid; the edit stays
                pending so the user can correct and resubmit
        """
        self._ensure_pending(pending)
        draft = pending.draft
        expense = await self._store.create_expense(
            description=draft["description"] if description is None else description,
            amount=draft["amount"] if amount is None else amount,
            payee=draft["payee"] if payee is None else payee,
            category_reference_id=(
                draft["category_reference_id"]
                if category_reference_id is None
                else category_reference_id
            ),
        )
        await self._audit(AuditEventBuilder.edit_resubmitted(
            original_id=pending.original.id,
            new_id=expense.id,
            correlation_id=pending.correlation_id,
        ))
        await self._projector.reload()
        return pending.model_copy(update={"state": EditState.RESUBMITTED}), expense

    async def abandon_edit(self, pending: PendingEdit) -> PendingEdit:
        """Give up on an edit. The original expense stays deleted."""
        self._ensure_pending(pending)
        logger.warning(
            "edit_abandoned",
            expense_id=str(pending.original.id),
            correlation_id=str(pending.correlation_id),
        )
        await self._audit(AuditEventBuilder.edit_abandoned(
            original_id=pending.original.id,
            original=pending.original.to_api_dict(),
            correlation_id=pending.correlation_id,
        ))
        return pending.model_copy(update={"state": EditState.ABANDONED})


class AppComponents:
    """Everything a client session needs, wired to one storage backend."""

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        expense_storage: ExpenseStorageInterface,
        audit_storage: Optional[AuditStorageInterface] = None,
        validator: Optional[ExpenseValidator] = None,
    ):
        write_lock = asyncio.Lock()
        validator = validator or ExpenseValidator()

        self.audit_logger = AuditLogger(audit_storage)
        self.gate = ReferentialIntegrityGate(category_storage, expense_storage)
        self.category_store = CategoryStore(
            storage=category_storage,
            gate=self.gate,
            validator=validator,
            audit_logger=self.audit_logger,
            write_lock=write_lock,
        )
        self.expense_store = ExpenseStore(
            storage=expense_storage,
            gate=self.gate,
            validator=validator,
            audit_logger=self.audit_logger,
            write_lock=write_lock,
        )
        self.projector = CacheProjector(
            self.category_store,
            self.expense_store,
            audit_logger=self.audit_logger,
        )
        self.category_flow = CategoryFlow(self.category_store, self.projector)
        self.expense_flow = ExpenseFlow(
            self.expense_store,
            self.projector,
            audit_logger=self.audit_logger,
        )

    async def startup(self, seed_defaults: bool = True) -> None:
        """Seed default categories (empty store only) and build the first projection."""
        if seed_defaults:
            await self.category_store.seed_defaults()
        await self.projector.reload()


def create_app_components(
    backend: Optional[str] = None,
    memory_db: Optional[InMemoryDatabase] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "google_sheets"; defaults to the
                 storage_backend setting.
        memory_db: Database for the memory backend; pass the same one to
                   several component sets so they share data.

    Returns:
        AppComponents wired to the chosen backend
    """
    settings = get_settings().app
    backend = backend or settings.storage_backend

    if backend == "google_sheets":
        from expense_tracker.services.storage.google_sheets import (
            GoogleSheetsAuditStorage,
            GoogleSheetsCategoryStorage,
            GoogleSheetsClient,
            GoogleSheetsExpenseStorage,
        )

        sheets_client = GoogleSheetsClient()
        components = AppComponents(
            category_storage=GoogleSheetsCategoryStorage(sheets_client),
            expense_storage=GoogleSheetsExpenseStorage(sheets_client),
            audit_storage=GoogleSheetsAuditStorage(sheets_client),
        )
    elif backend == "memory":
        db = memory_db if memory_db is not None else InMemoryDatabase()
        components = AppComponents(
            category_storage=InMemoryCategoryStorage(db),
            expense_storage=InMemoryExpenseStorage(db),
            audit_storage=InMemoryAuditStorage(db),
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(
        "components_created",
        backend=backend,
        environment=settings.app_environment,
    )
    return components
