"""
Category Models

A category is identified twice:
- `id`: stable unique identifier assigned by the store
- `reference_id`: legacy sequential integer used by expenses as their foreign key

The reference id is immutable once assigned. Renaming only touches `name`.
"""

from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_CATEGORY_NAMES = [
    "Automobile",
    "Entertainment",
    "Family",
    "Food",
    "Health Care",
    "Home Office",
    "Household",
    "Insurance",
    "Loans",
    "Other",
    "Personal",
    "Tax",
    "Travel",
    "Utilities",
    "Vacation",
]


class Category(BaseModel):
    """A stored category."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Stable unique identifier"
    )
    reference_id: int = Field(
        ...,
        ge=0,
        alias="referenceId",
        description="Sequential id used as the foreign key from expenses"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique category name"
    )

    def renamed(self, new_name: str) -> "Category":
        """Return a copy with a new name; identifiers are kept."""
        return Category(id=self.id, reference_id=self.reference_id, name=new_name)

    def to_api_dict(self) -> dict:
        return {
            "id": str(self.id),
            "referenceId": self.reference_id,
            "name": self.name,
        }


def next_reference_id(existing: list[int]) -> int:
    """Reference ids are max(existing) + 1, starting at 0."""
    return max(existing) + 1 if existing else 0
