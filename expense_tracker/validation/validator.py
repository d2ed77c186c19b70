"""
Expense and Category Validation

Validation turns raw user/transport input into normalized models.
It reports every issue it finds instead of stopping at the first one, and
never silently fixes input beyond trimming whitespace and rounding the
amount to 2 decimal places.

Error-level issues raise ValidationError. Warning-level issues (e.g. an
unusually large amount) are logged and returned but do not block the write.
"""

import re
from decimal import Decimal
from typing import Any, Optional

import structlog

from expense_tracker.config import get_settings
from expense_tracker.errors import ValidationError
from expense_tracker.models.expense import ExpenseInput, normalize_amount, to_decimal
from expense_tracker.models.validation import ValidationIssue


logger = structlog.get_logger(__name__)


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


REFERENCE_ID_PATTERN = re.compile(r"[0-9]{1,18}")


def _to_reference_id(value: Any) -> Optional[int]:
    """Accept ints, integral floats and plain digit strings ("3"); reject bools and junk."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if not REFERENCE_ID_PATTERN.fullmatch(text):
        return None
    return int(text)


class ExpenseValidator:
    """Validates expense fields and category names."""

    def __init__(self, rounding: Optional[str] = None, max_amount: Optional[float] = None):
        settings = get_settings().app
        self._rounding = rounding or settings.amount_rounding
        self._max_amount = Decimal(str(max_amount or settings.max_expense_amount))

    def validate_expense(
        self,
        description: Any,
        amount: Any,
        payee: Any,
        category_reference_id: Any,
    ) -> tuple[ExpenseInput, list[ValidationIssue]]:
        """
        Validate and normalize expense fields.

        Returns:
            (normalized_input, warnings)

        Raises:
            ValidationError: If any error-level issue is found
        """
        issues = []

        description_text = _clean_text(description)
        if not description_text:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))

        payee_text = _clean_text(payee)
        if not payee_text:
            issues.append(ValidationIssue(
                field="payee",
                issue_type="missing",
                message="Payee is required",
                severity="error",
            ))

        normalized = None
        value = to_decimal(amount)
        if value is None or not value.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount must be a valid positive number",
                severity="error",
            ))
        else:
            try:
                normalized = normalize_amount(value, self._rounding)
            except ArithmeticError:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount is out of range",
                    severity="error",
                ))

        if normalized is not None:
            if normalized <= 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than zero",
                    severity="error",
                    suggested_fix="Amounts below 0.005 round to zero",
                ))
            elif normalized > self._max_amount:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message=f"Amount (${normalized:,.2f}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

        reference_id = _to_reference_id(category_reference_id)
        if reference_id is None or reference_id < 0:
            issues.append(ValidationIssue(
                field="category_reference_id",
                issue_type="missing",
                message="Valid category selection is required",
                severity="error",
            ))

        errors = [issue for issue in issues if issue.is_blocking]
        if errors:
            raise ValidationError(
                "; ".join(issue.message for issue in errors),
                issues=errors,
            )

        warnings = [issue for issue in issues if not issue.is_blocking]
        if warnings:
            logger.warning(
                "expense_validation_warnings",
                warnings=[w.message for w in warnings],
            )

        fields = ExpenseInput(
            description=description_text,
            amount=normalized,
            payee=payee_text,
            category_reference_id=reference_id,
        )
        return fields, warnings

    def validate_category_name(self, name: Any) -> str:
        """
        Validate a category name and return it trimmed.

        Raises:
            ValidationError: If the name is missing or not a string
        """
        if not isinstance(name, str) or not name.strip():
            issue = ValidationIssue(
                field="name",
                issue_type="missing",
                message="Category name must be a non-empty string",
                severity="error",
            )
            raise ValidationError(issue.message, issues=[issue])

        cleaned = name.strip()
        if len(cleaned) > 100:
            issue = ValidationIssue(
                field="name",
                issue_type="invalid_value",
                message="Category name must be at most 100 characters",
                severity="error",
            )
            raise ValidationError(issue.message, issues=[issue])
        return cleaned

    @staticmethod
    def get_user_friendly_summary(error: ValidationError) -> str:
        """Summarize issues for display."""
        if not error.issues:
            return str(error)
        lines = [f"Please fix {len(error.issues)} issue(s):"]
        for issue in error.issues:
            line = f"- {issue.message}"
            if issue.suggested_fix:
                line += f" ({issue.suggested_fix})"
            lines.append(line)
        return "\n".join(lines)
