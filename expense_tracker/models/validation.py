"""Validation issue model shared by the validator, the gate and the API."""

from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """One problem with a submitted expense or category."""

    field: str = Field(
        ...,
        description="Submitted field, e.g. 'amount', 'name' or 'category_reference_id'"
    )
    issue_type: str = Field(
        ...,
        description="missing, invalid_format, invalid_value, unknown_category or suspicious_value"
    )
    message: str = Field(
        ...,
        description="Message shown to the user"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Only errors block the write"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Hint shown next to the message"
    )

    @property
    def is_blocking(self) -> bool:
        return self.severity == "error"
