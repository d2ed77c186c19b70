"""
Expense Models

Amounts are Decimal internally and travel as fixed 2-decimal strings
("12.35"), so a float never leaks into storage or the API.
"""

from datetime import datetime
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


TWO_PLACES = Decimal("0.01")

ROUNDING_MODES = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert user/transport input to Decimal.

    Floats go through str() so 12.345 becomes Decimal("12.345") and not
    its binary approximation. Returns None for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def normalize_amount(value: Decimal, rounding: str = "half_up") -> Decimal:
    """Quantize to 2 decimal places (12.345 -> 12.35 with half_up)."""
    return value.quantize(TWO_PLACES, rounding=ROUNDING_MODES[rounding])


def format_amount(value: Decimal) -> str:
    """Two-decimal display string."""
    return f"{normalize_amount(Decimal(value)):.2f}"


class ExpenseInput(BaseModel):
    """
    Validated, normalized expense fields.

    This is what the store writes on create and on full replace.
    Build it through ExpenseValidator so the checks produce readable issues.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payee: str = Field(..., min_length=1, max_length=200)
    category_reference_id: int = Field(..., ge=0)


class Expense(BaseModel):
    """A stored expense record."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Stable unique identifier"
    )
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount with fixed 2-decimal precision"
    )
    payee: str = Field(..., min_length=1, max_length=200)
    category_reference_id: int = Field(
        ...,
        ge=0,
        alias="categoryId",
        description="Reference id of the owning category"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        alias="createdAt",
        description="Creation timestamp, never mutated"
    )

    @classmethod
    def from_input(cls, fields: ExpenseInput) -> "Expense":
        return cls(
            description=fields.description,
            amount=fields.amount,
            payee=fields.payee,
            category_reference_id=fields.category_reference_id,
        )

    def replaced_with(self, fields: ExpenseInput) -> "Expense":
        """Full replace of the mutable fields; id and created_at survive."""
        return Expense(
            id=self.id,
            created_at=self.created_at,
            description=fields.description,
            amount=fields.amount,
            payee=fields.payee,
            category_reference_id=fields.category_reference_id,
        )

    def to_input(self) -> ExpenseInput:
        return ExpenseInput(
            description=self.description,
            amount=self.amount,
            payee=self.payee,
            category_reference_id=self.category_reference_id,
        )

    @property
    def amount_str(self) -> str:
        return format_amount(self.amount)

    def to_api_dict(self) -> dict:
        return {
            "id": str(self.id),
            "description": self.description,
            "amount": self.amount_str,
            "payee": self.payee,
            "categoryId": self.category_reference_id,
            "createdAt": self.created_at.isoformat(),
        }
