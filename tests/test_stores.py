"""
Tests for the Category and Expense stores

Both stores run against the in-memory backend. Async methods are driven
with asyncio.run from plain pytest tests.
"""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.errors import (
    DuplicateNameError,
    HasDependentExpensesError,
    NotFoundError,
    ReferenceIdConflictError,
    ValidationError,
)
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.category import DEFAULT_CATEGORY_NAMES, Category
from expense_tracker.orchestrator import AppComponents
from expense_tracker.services.storage import (
    InMemoryCategoryStorage,
    InMemoryDatabase,
    InMemoryExpenseStorage,
)
from expense_tracker.validation import ExpenseValidator


class RacingCategoryStorage(InMemoryCategoryStorage):
    """Simulates another process inserting a category with the same reference id."""

    async def insert_category(self, category: Category) -> Category:
        rival = Category(reference_id=category.reference_id, name=f"{category.name} (other)")
        await super().insert_category(rival)
        return await super().insert_category(category)


def add_expense(components, amount="10.00", reference_id=0, description="Lunch", payee="Cafe"):
    return asyncio.run(components.expense_store.create_expense(
        description=description,
        amount=amount,
        payee=payee,
        category_reference_id=reference_id,
    ))


class TestCategoryStore:
    """Tests for category creation, rename and delete."""

    def test_reference_ids_start_at_zero_and_increase(self, components):
        store = components.category_store
        food = asyncio.run(store.create_category("Food"))
        travel = asyncio.run(store.create_category("Travel"))
        assert food.reference_id == 0
        assert travel.reference_id == 1

    def test_reference_id_is_max_plus_one_after_delete(self, components):
        """Deleting a lower id does not free it for reuse."""
        store = components.category_store
        first = asyncio.run(store.create_category("A"))
        asyncio.run(store.create_category("B"))
        asyncio.run(store.delete_category(first.id))
        third = asyncio.run(store.create_category("C"))
        assert third.reference_id == 2

    def test_create_trims_name(self, components):
        category = asyncio.run(components.category_store.create_category("  Food  "))
        assert category.name == "Food"

    def test_duplicate_name_rejected(self, components):
        store = components.category_store
        asyncio.run(store.create_category("Food"))
        with pytest.raises(DuplicateNameError):
            asyncio.run(store.create_category("Food"))
        assert len(asyncio.run(store.list_categories())) == 1

    @pytest.mark.parametrize("name", ["", "   ", None, 42])
    def test_invalid_name_rejected(self, components, name):
        with pytest.raises(ValidationError):
            asyncio.run(components.category_store.create_category(name))

    def test_concurrent_creates_get_distinct_reference_ids(self, components):
        store = components.category_store

        async def create_both():
            return await asyncio.gather(
                store.create_category("Food"),
                store.create_category("Travel"),
            )

        created = asyncio.run(create_both())
        assert sorted(c.reference_id for c in created) == [0, 1]

    def test_reference_id_conflict_rolls_back_losing_insert(self):
        """A rival writer with the same reference id wins; our insert is undone."""
        db = InMemoryDatabase()
        components = AppComponents(
            category_storage=RacingCategoryStorage(db),
            expense_storage=InMemoryExpenseStorage(db),
        )
        with pytest.raises(ReferenceIdConflictError):
            asyncio.run(components.category_store.create_category("Food"))

        names = [c.name for c in db.categories.values()]
        assert names == ["Food (other)"]

    def test_rename_keeps_reference_id(self, components):
        store = components.category_store
        category = asyncio.run(store.create_category("Food"))
        renamed = asyncio.run(store.rename_category(category.id, "Groceries"))
        assert renamed.id == category.id
        assert renamed.reference_id == category.reference_id
        assert renamed.name == "Groceries"

    def test_rename_to_same_name_is_noop(self, components):
        store = components.category_store
        category = asyncio.run(store.create_category("Food"))
        assert asyncio.run(store.rename_category(category.id, "Food")) == category

    def test_rename_to_existing_name_rejected(self, components):
        store = components.category_store
        asyncio.run(store.create_category("Food"))
        travel = asyncio.run(store.create_category("Travel"))
        with pytest.raises(DuplicateNameError):
            asyncio.run(store.rename_category(travel.id, "Food"))

    def test_rename_unknown_id(self, components):
        with pytest.raises(NotFoundError):
            asyncio.run(components.category_store.rename_category(uuid4(), "Food"))

    def test_delete_blocked_by_dependents(self, components, db):
        store = components.category_store
        category = asyncio.run(store.create_category("Food"))
        add_expense(components, reference_id=category.reference_id)
        add_expense(components, reference_id=category.reference_id)

        with pytest.raises(HasDependentExpensesError) as exc_info:
            asyncio.run(store.delete_category(category.id))

        assert exc_info.value.count == 2
        assert category.id in db.categories
        blocked = [
            e for e in db.audit_events
            if e.event_type == AuditEventType.CATEGORY_DELETE_BLOCKED
        ]
        assert len(blocked) == 1

    def test_delete_unknown_id(self, components):
        with pytest.raises(NotFoundError):
            asyncio.run(components.category_store.delete_category(uuid4()))

    def test_delete_empty_category(self, components):
        store = components.category_store
        category = asyncio.run(store.create_category("Food"))
        deleted = asyncio.run(store.delete_category(category.id))
        assert deleted.id == category.id
        assert asyncio.run(store.list_categories()) == []

    def test_seed_defaults_only_when_empty(self, components):
        store = components.category_store
        seeded = asyncio.run(store.seed_defaults())
        assert [c.name for c in seeded] == DEFAULT_CATEGORY_NAMES
        assert [c.reference_id for c in seeded] == list(range(15))
        assert asyncio.run(store.seed_defaults()) == []
        assert len(asyncio.run(store.list_categories())) == 15


class TestExpenseStore:
    """Tests for expense create, replace, delete and filtering."""

    @pytest.fixture(autouse=True)
    def food(self, components):
        self.food = asyncio.run(components.category_store.create_category("Food"))
        return self.food

    def test_create_normalizes_amount(self, components):
        expense = add_expense(components, amount="12.345")
        assert expense.amount == Decimal("12.35")
        assert expense.to_api_dict()["amount"] == "12.35"

    def test_create_accepts_float_amount(self, components):
        expense = add_expense(components, amount=12.345)
        assert expense.amount_str == "12.35"

    def test_create_trims_text(self, components):
        expense = add_expense(components, description="  Lunch ", payee=" Cafe ")
        assert expense.description == "Lunch"
        assert expense.payee == "Cafe"

    def test_create_reports_every_issue(self, components):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(components.expense_store.create_expense(
                description="",
                amount="abc",
                payee="   ",
                category_reference_id="undefined",
            ))
        fields = {issue.field for issue in exc_info.value.issues}
        assert fields == {"description", "amount", "payee", "category_reference_id"}

    @pytest.mark.parametrize("amount", ["0", "-5", "0.001", None, "NaN", "1e30000"])
    def test_create_rejects_bad_amounts(self, components, amount):
        with pytest.raises(ValidationError):
            add_expense(components, amount=amount)

    def test_create_rejects_unknown_category(self, components, db):
        with pytest.raises(ValidationError) as exc_info:
            add_expense(components, reference_id=99)
        assert exc_info.value.issues[0].issue_type == "unknown_category"
        assert db.expenses == {}

    def test_create_accepts_string_reference_id(self, components):
        expense = add_expense(components, reference_id="0")
        assert expense.category_reference_id == 0

    def test_failed_validation_is_audited(self, components, db):
        with pytest.raises(ValidationError):
            add_expense(components, amount="abc")
        assert any(e.event_type == AuditEventType.VALIDATION_FAILED for e in db.audit_events)

    def test_list_filters_by_category(self, components):
        travel = asyncio.run(components.category_store.create_category("Travel"))
        add_expense(components, reference_id=self.food.reference_id)
        add_expense(components, reference_id=travel.reference_id, description="Train")

        store = components.expense_store
        assert len(asyncio.run(store.list_expenses())) == 2
        only_travel = asyncio.run(store.list_expenses(travel.reference_id))
        assert [e.description for e in only_travel] == ["Train"]

    def test_replace_overwrites_all_fields(self, components):
        travel = asyncio.run(components.category_store.create_category("Travel"))
        original = add_expense(components)

        replaced = asyncio.run(components.expense_store.replace_expense(
            original.id,
            description="Train",
            amount="55.5",
            payee="Rail",
            category_reference_id=travel.reference_id,
        ))

        assert replaced.id == original.id
        assert replaced.created_at == original.created_at
        assert replaced.amount_str == "55.50"
        assert replaced.category_reference_id == travel.reference_id
        stored = asyncio.run(components.expense_store.get_expense(original.id))
        assert stored == replaced

    def test_replace_unknown_id(self, components):
        with pytest.raises(NotFoundError):
            asyncio.run(components.expense_store.replace_expense(
                uuid4(),
                description="Train",
                amount="5",
                payee="Rail",
                category_reference_id=0,
            ))

    def test_replace_requires_every_field(self, components):
        original = add_expense(components)
        with pytest.raises(ValidationError):
            asyncio.run(components.expense_store.replace_expense(
                original.id,
                description="Train",
                amount=None,
                payee="Rail",
                category_reference_id=0,
            ))

    def test_delete(self, components):
        expense = add_expense(components)
        asyncio.run(components.expense_store.delete_expense(expense.id))
        with pytest.raises(NotFoundError):
            asyncio.run(components.expense_store.get_expense(expense.id))

    def test_delete_unknown_id(self, components):
        with pytest.raises(NotFoundError):
            asyncio.run(components.expense_store.delete_expense(uuid4()))


class TestExpenseValidator:
    """Tests for the validator outside the stores."""

    def test_high_amount_is_a_warning(self):
        validator = ExpenseValidator(max_amount=100)
        fields, warnings = validator.validate_expense(
            description="TV",
            amount="500",
            payee="Shop",
            category_reference_id=0,
        )
        assert fields.amount == Decimal("500.00")
        assert warnings[0].issue_type == "suspicious_value"

    def test_half_even_rounding(self):
        validator = ExpenseValidator(rounding="half_even")
        fields, _ = validator.validate_expense(
            description="Lunch",
            amount="12.345",
            payee="Cafe",
            category_reference_id=0,
        )
        assert fields.amount == Decimal("12.34")

    @pytest.mark.parametrize(
        "value",
        [True, "1.5", "abc", -1, "1e5000000", "1e999999999", "9" * 19, float("inf")],
    )
    def test_bad_reference_ids(self, value):
        with pytest.raises(ValidationError):
            ExpenseValidator().validate_expense(
                description="Lunch",
                amount="1",
                payee="Cafe",
                category_reference_id=value,
            )

    def test_category_name_too_long(self):
        with pytest.raises(ValidationError):
            ExpenseValidator().validate_category_name("x" * 101)

    def test_user_friendly_summary(self):
        try:
            ExpenseValidator().validate_expense(
                description="",
                amount="5",
                payee="Cafe",
                category_reference_id=0,
            )
        except ValidationError as e:
            summary = ExpenseValidator.get_user_friendly_summary(e)
        assert "1 issue(s)" in summary
        assert "Description is required" in summary
