"""Tests for the client cache projection."""

import asyncio
from decimal import Decimal

import pytest

from expense_tracker.errors import TransportError
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense
from expense_tracker.orchestrator import AppComponents
from expense_tracker.projection import build_snapshot
from expense_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryExpenseStorage,
)


class FlakyExpenseStorage(InMemoryExpenseStorage):
    """Fails every list call while `down` is set."""

    down = False

    async def list_expenses(self, category_reference_id=None):
        if self.down:
            raise ConnectionError("connection reset")
        return await super().list_expenses(category_reference_id)


def expense(reference_id, amount="1.00", description="Item"):
    return Expense(
        description=description,
        amount=amount,
        payee="Shop",
        category_reference_id=reference_id,
    )


class TestBuildSnapshot:
    """Tests for grouping expenses under categories."""

    def test_groups_by_reference_id_in_store_order(self):
        food = Category(reference_id=0, name="Food")
        travel = Category(reference_id=1, name="Travel")
        items = [
            expense(1, description="Train"),
            expense(0, description="Lunch"),
            expense(0, description="Dinner"),
        ]

        snapshot = build_snapshot([food, travel], items, version=1)

        assert [e.description for e in snapshot.bucket(0)] == ["Lunch", "Dinner"]
        assert [e.description for e in snapshot.bucket(1)] == ["Train"]
        assert snapshot.expense_count() == 3

    def test_every_category_has_a_bucket(self):
        snapshot = build_snapshot([Category(reference_id=4, name="Tax")], [], version=1)
        assert snapshot.buckets == {4: ()}
        assert snapshot.total() == Decimal("0.00")

    def test_orphans_are_dropped_and_counted(self):
        food = Category(reference_id=0, name="Food")
        snapshot = build_snapshot([food], [expense(0), expense(7)], version=1)
        assert snapshot.expense_count() == 1
        assert snapshot.dropped_count == 1

    def test_category_order_does_not_move_expenses(self):
        """Buckets follow reference ids, not list positions."""
        food = Category(reference_id=0, name="Food")
        travel = Category(reference_id=1, name="Travel")
        items = [expense(0, description="Lunch"), expense(1, description="Train")]

        snapshot = build_snapshot([travel, food], items, version=1)

        assert snapshot.resolve(0, 0).description == "Lunch"
        assert snapshot.resolve_at(0, 0).description == "Train"
        assert snapshot.resolve_at(1, 0).description == "Lunch"

    @pytest.mark.parametrize("reference_id, index", [(0, 1), (0, -1), (9, 0)])
    def test_resolve_misses(self, reference_id, index):
        snapshot = build_snapshot(
            [Category(reference_id=0, name="Food")],
            [expense(0)],
            version=1,
        )
        assert snapshot.resolve(reference_id, index) is None

    def test_totals(self):
        food = Category(reference_id=0, name="Food")
        travel = Category(reference_id=1, name="Travel")
        items = [expense(0, "2.50"), expense(0, "2.50"), expense(1, "5.00")]

        snapshot = build_snapshot([food, travel], items, version=1)

        assert snapshot.total() == Decimal("10.00")
        assert snapshot.category_totals() == [
            (food, Decimal("5.00")),
            (travel, Decimal("5.00")),
        ]


class TestCacheProjector:
    """Tests for reload behavior."""

    def test_initial_snapshot_is_empty(self, components):
        snapshot = components.projector.snapshot
        assert snapshot.is_empty
        assert snapshot.expense_count() == 0

    def test_reload_bumps_version(self, components):
        projector = components.projector
        first = asyncio.run(projector.reload())
        second = asyncio.run(projector.reload())
        assert first.version == 1
        assert second.version == 2
        assert projector.snapshot is second

    def test_reload_reflects_store(self, components):
        food = asyncio.run(components.category_store.create_category("Food"))
        asyncio.run(components.expense_store.create_expense(
            description="Lunch",
            amount="10",
            payee="Cafe",
            category_reference_id=food.reference_id,
        ))

        asyncio.run(components.projector.reload())

        assert components.projector.lookup(food.reference_id, 0).description == "Lunch"
        assert components.projector.lookup_at(0, 0).description == "Lunch"
        assert components.projector.totals() == Decimal("10.00")

    def test_orphans_dropped_on_reload(self, components, db):
        food = asyncio.run(components.category_store.create_category("Food"))
        orphan = expense(food.reference_id + 1)
        db.expenses[orphan.id] = orphan

        snapshot = asyncio.run(components.projector.reload())

        assert snapshot.dropped_count == 1
        assert snapshot.expense_count() == 0

    def test_failed_reload_keeps_previous_snapshot(self):
        db = InMemoryDatabase()
        storage = FlakyExpenseStorage(db)
        components = AppComponents(
            category_storage=InMemoryCategoryStorage(db),
            expense_storage=storage,
            audit_storage=InMemoryAuditStorage(db),
        )
        before = asyncio.run(components.projector.reload())

        storage.down = True
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(components.projector.reload())

        assert "Failed to load expenses" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, ConnectionError)
        assert components.projector.snapshot is before
        assert any(
            e.event_type == AuditEventType.PROJECTION_RELOAD_FAILED
            for e in db.audit_events
        )
