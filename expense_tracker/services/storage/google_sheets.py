"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets serves as the hosted document store because:
1. Users can view their expenses directly in Sheets
2. No database server to run
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the stores serialize writes in-process)
- Limited query capabilities (we filter in Python)

RETRIES: only idempotent calls (connecting, reading rows) are retried.
Writes are attempted once; a retried append could duplicate a document.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_tracker.config import get_settings
from expense_tracker.errors import TransportError
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.category import Category
from expense_tracker.models.expense import Expense
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
)


CATEGORY_COLUMNS = [
    "id",
    "reference_id",
    "name",
]

EXPENSE_COLUMNS = [
    "id",
    "description",
    "amount",
    "payee",
    "category_reference_id",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_kind",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise TransportError(
                    f"Google credentials file not found: {self._settings.credentials_path}",
                    cause=e,
                )
            except Exception as e:
                raise TransportError("Failed to connect to Google Sheets", cause=e)

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise TransportError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}",
                    cause=e,
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_categories_sheet(self) -> gspread.Worksheet:
        """Get or create the Categories worksheet."""
        return self._get_or_create_sheet(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, rows=200
        )

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_rows(self, sheet: gspread.Worksheet) -> list[list[str]]:
        """All data rows (header excluded). Safe to retry."""
        return sheet.get_all_values()[1:]


def _find_row_number(rows: list[list[str]], doc_id: UUID) -> Optional[int]:
    """1-based sheet row number for a document id (row 1 is the header)."""
    for idx, row in enumerate(rows, start=2):
        if row and row[0] == str(doc_id):
            return idx
    return None


def _write_row(sheet: gspread.Worksheet, row_number: int, values: list) -> None:
    """Overwrite one row in a single call, stored as typed (no formula parsing)."""
    sheet.update(range_name=f"A{row_number}", values=[values], value_input_option="RAW")


class GoogleSheetsCategoryStorage(CategoryStorageInterface):
    """Categories stored one per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _category_to_row(self, category: Category) -> list:
        return [str(category.id), str(category.reference_id), category.name]

    def _row_to_category(self, row: list) -> Category:
        return Category(
            id=UUID(_safe_get(row, 0)),
            reference_id=int(_safe_get(row, 1)),
            name=_safe_get(row, 2),
        )

    async def list_categories(self) -> list[Category]:
        try:
            sheet = self._client.get_categories_sheet()
            rows = self._client.read_rows(sheet)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to list categories", cause=e)

        categories = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                categories.append(self._row_to_category(row))
            except ValueError:
                continue  # Skip malformed rows
        return categories

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        for category in await self.list_categories():
            if category.id == category_id:
                return category
        return None

    async def find_category_by_name(self, name: str) -> Optional[Category]:
        for category in await self.list_categories():
            if category.name == name:
                return category
        return None

    async def insert_category(self, category: Category) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            sheet.append_row(self._category_to_row(category), value_input_option="RAW")
            return category
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to save category", cause=e)

    async def update_category(self, category: Category) -> bool:
        try:
            sheet = self._client.get_categories_sheet()
            row_number = _find_row_number(self._client.read_rows(sheet), category.id)
            if row_number is None:
                return False
            _write_row(sheet, row_number, self._category_to_row(category))
            return True
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to update category", cause=e)

    async def delete_category(self, category_id: UUID) -> bool:
        try:
            sheet = self._client.get_categories_sheet()
            row_number = _find_row_number(self._client.read_rows(sheet), category_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to delete category", cause=e)


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """Expenses stored one per row; amounts kept as 2-decimal strings."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            str(expense.id),
            expense.description,
            expense.amount_str,
            expense.payee,
            str(expense.category_reference_id),
            expense.created_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        return Expense(
            id=UUID(_safe_get(row, 0)),
            description=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            payee=_safe_get(row, 3),
            category_reference_id=int(_safe_get(row, 4)),
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
        )

    async def list_expenses(
        self,
        category_reference_id: Optional[int] = None,
    ) -> list[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            rows = self._client.read_rows(sheet)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to list expenses", cause=e)

        expenses = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                expense = self._row_to_expense(row)
            except Exception:
                continue  # Skip malformed rows
            if (
                category_reference_id is not None
                and expense.category_reference_id != category_reference_id
            ):
                continue
            expenses.append(expense)
        return expenses

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        for expense in await self.list_expenses():
            if expense.id == expense_id:
                return expense
        return None

    async def count_by_category(self, category_reference_id: int) -> int:
        return len(await self.list_expenses(category_reference_id))

    async def insert_expense(self, expense: Expense) -> Expense:
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return expense
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to save expense", cause=e)

    async def update_expense(self, expense: Expense) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            row_number = _find_row_number(self._client.read_rows(sheet), expense.id)
            if row_number is None:
                return False
            _write_row(sheet, row_number, self._expense_to_row(expense))
            return True
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to update expense", cause=e)

    async def delete_expense(self, expense_id: UUID) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            row_number = _find_row_number(self._client.read_rows(sheet), expense_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to delete expense", cause=e)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=UUID(_safe_get(row, 5)) if _safe_get(row, 5) else None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_kind=_safe_get(row, 9) or None,
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise TransportError("Failed to write audit event", cause=e)

    async def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            rows = self._client.read_rows(sheet)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError("Failed to get audit events", cause=e)

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in await self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = await self._all_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
