"""
Client Cache Projection

A snapshot groups expenses under categories for display and for the
edit/remove workflows. Buckets are keyed by category reference id, never by
list position, so a different category ordering between reloads cannot
shift expenses into the wrong bucket. Positions are still offered for
display code, but they are resolved through this snapshot's own category
order.

Snapshots are immutable. A reload produces a new one; callers must drop any
(category, index) pair they resolved against an older snapshot.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense, normalize_amount


class ProjectionSnapshot(BaseModel):
    """Grouped, read-only view of both collections as of one reload."""

    model_config = ConfigDict(frozen=True)

    version: int = Field(
        default=0,
        ge=0,
        description="Incremented on every successful reload"
    )
    loaded_at: datetime = Field(default_factory=datetime.utcnow)
    categories: tuple[Category, ...] = ()
    buckets: dict[int, tuple[Expense, ...]] = Field(
        default_factory=dict,
        description="reference_id -> expenses in store order"
    )
    dropped_count: int = Field(
        default=0,
        ge=0,
        description="Expenses whose category no longer exists"
    )

    @property
    def is_empty(self) -> bool:
        return self.version == 0

    def category_at(self, position: int) -> Optional[Category]:
        if 0 <= position < len(self.categories):
            return self.categories[position]
        return None

    def category_by_reference(self, reference_id: int) -> Optional[Category]:
        for category in self.categories:
            if category.reference_id == reference_id:
                return category
        return None

    def bucket(self, reference_id: int) -> tuple[Expense, ...]:
        return self.buckets.get(reference_id, ())

    def bucket_at(self, position: int) -> tuple[Expense, ...]:
        category = self.category_at(position)
        if category is None:
            return ()
        return self.bucket(category.reference_id)

    def resolve(self, reference_id: int, index: int) -> Optional[Expense]:
        """Expense at `index` within a category's bucket, or None."""
        bucket = self.bucket(reference_id)
        if 0 <= index < len(bucket):
            return bucket[index]
        return None

    def resolve_at(self, position: int, index: int) -> Optional[Expense]:
        category = self.category_at(position)
        if category is None:
            return None
        return self.resolve(category.reference_id, index)

    def iter_expenses(self) -> Iterator[Expense]:
        for category in self.categories:
            yield from self.bucket(category.reference_id)

    def expense_count(self) -> int:
        return sum(len(bucket) for bucket in self.buckets.values())

    def total(self) -> Decimal:
        """Sum of every projected amount, 2-decimal precision."""
        total = sum((Decimal(e.amount) for e in self.iter_expenses()), Decimal("0"))
        return normalize_amount(total)

    def category_totals(self) -> list[tuple[Category, Decimal]]:
        """Per-category totals in category order (chart data)."""
        return [
            (
                category,
                normalize_amount(
                    sum((e.amount for e in self.bucket(category.reference_id)), Decimal("0"))
                ),
            )
            for category in self.categories
        ]
