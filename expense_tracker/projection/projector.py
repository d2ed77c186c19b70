"""
Client Cache Projector

Builds the grouped view (category -> expenses) the UI reads from.

Rules:
- Every reload fetches both collections in full and builds a new snapshot;
  there is no incremental patching
- Expenses whose category reference id matches no live category are dropped
  from the view (counted, not raised)
- A failed reload leaves the previous snapshot in place
- Each mutation must be followed by a reload before the view is read again
"""

from decimal import Decimal
from typing import Optional

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.errors import ExpenseTrackerError, TransportError
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense
from expense_tracker.models.projection import ProjectionSnapshot
from expense_tracker.stores import CategoryStore, ExpenseStore


logger = structlog.get_logger(__name__)


def build_snapshot(
    categories: list[Category],
    expenses: list[Expense],
    version: int,
) -> ProjectionSnapshot:
    """Group expenses under their categories by reference id."""
    buckets: dict[int, list[Expense]] = {}
    for category in categories:
        buckets.setdefault(category.reference_id, [])

    dropped = 0
    for expense in expenses:
        bucket = buckets.get(expense.category_reference_id)
        if bucket is None:
            dropped += 1
            continue
        bucket.append(expense)

    return ProjectionSnapshot(
        version=version,
        categories=tuple(categories),
        buckets={ref: tuple(items) for ref, items in buckets.items()},
        dropped_count=dropped,
    )


class CacheProjector:
    """
    Owns the current projection snapshot for one client session.

    The snapshot is replaced, never mutated, so a reader holding the old one
    keeps a consistent view until it asks for the new one.
    """

    def __init__(
        self,
        category_store: CategoryStore,
        expense_store: ExpenseStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = category_store
        self._expenses = expense_store
        self._audit_logger = audit_logger
        self._snapshot = ProjectionSnapshot()

    @property
    def snapshot(self) -> ProjectionSnapshot:
        return self._snapshot

    async def reload(self) -> ProjectionSnapshot:
        """
        Rebuild the projection from both stores.

        Raises:
            TransportError: If either collection cannot be read; the previous
                snapshot stays current
        """
        try:
            categories = await self._categories.list_categories()
            expenses = await self._expenses.list_expenses()
        except ExpenseTrackerError as e:
            await self._reload_failed(e)
            raise
        except Exception as e:
            error = TransportError("Failed to load expenses", cause=e)
            await self._reload_failed(error)
            raise error from e

        snapshot = build_snapshot(categories, expenses, self._snapshot.version + 1)
        self._snapshot = snapshot

        if snapshot.dropped_count:
            logger.warning(
                "orphaned_expenses_dropped",
                dropped_count=snapshot.dropped_count,
                version=snapshot.version,
            )
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.projection_reloaded(
                version=snapshot.version,
                category_count=len(snapshot.categories),
                expense_count=snapshot.expense_count(),
                dropped_count=snapshot.dropped_count,
            ))
        return snapshot

    async def _reload_failed(self, error: ExpenseTrackerError) -> None:
        logger.error(
            "projection_reload_failed",
            kind=error.kind,
            error=str(error),
            kept_version=self._snapshot.version,
        )
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.projection_reload_failed(
                kept_version=self._snapshot.version,
                error_kind=error.kind,
                error_message=str(error),
            ))

    def totals(self) -> Decimal:
        """Sum of every projected amount."""
        return self._snapshot.total()

    def category_totals(self) -> list[tuple[Category, Decimal]]:
        """Per-category totals in category order."""
        return self._snapshot.category_totals()

    def lookup(self, reference_id: int, index: int) -> Optional[Expense]:
        """Expense at `index` in a category's bucket, or None."""
        return self._snapshot.resolve(reference_id, index)

    def lookup_at(self, position: int, index: int) -> Optional[Expense]:
        """Expense at `index` in the bucket of the category at `position`."""
        return self._snapshot.resolve_at(position, index)
