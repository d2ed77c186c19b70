"""
HTTP API for Expense Tracker

Thin FastAPI layer over the Category and Expense stores. All rules live in
the stores; this module only parses ids, maps error kinds to status codes
and serializes documents.

Routes are served both at the root and under /api.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from expense_tracker.audit import configure_logging
from expense_tracker.config import get_settings
from expense_tracker.errors import (
    DuplicateNameError,
    ExpenseTrackerError,
    HasDependentExpensesError,
    NotFoundError,
    StaleReferenceError,
    TransportError,
    ValidationError,
)
from expense_tracker.models.validation import ValidationIssue
from expense_tracker.orchestrator import AppComponents, create_app_components


logger = structlog.get_logger(__name__)


STATUS_BY_ERROR = [
    (ValidationError, 400),
    (HasDependentExpensesError, 400),
    (NotFoundError, 404),
    (DuplicateNameError, 409),
    (StaleReferenceError, 409),
    (TransportError, 500),
]


def status_for(error: ExpenseTrackerError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


def _parse_id(value: str, entity: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        issue = ValidationIssue(
            field="id",
            issue_type="invalid_format",
            message=f"Invalid {entity} ID format",
            severity="error",
        )
        raise ValidationError(issue.message, issues=[issue])


def _parse_reference_filter(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        issue = ValidationIssue(
            field="categoryId",
            issue_type="invalid_format",
            message="categoryId must be an integer",
            severity="error",
        )
        raise ValidationError(issue.message, issues=[issue])


def _expense_fields(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "description": payload.get("description"),
        "amount": payload.get("amount"),
        "payee": payload.get("payee"),
        "category_reference_id": payload.get("categoryId"),
    }


def build_router(components: AppComponents) -> APIRouter:
    router = APIRouter()
    categories = components.category_store
    expenses = components.expense_store

    @router.get("/categories")
    async def list_categories():
        return [c.to_api_dict() for c in await categories.list_categories()]

    @router.post("/categories", status_code=201)
    async def create_category(payload: dict[str, Any] = Body(default_factory=dict)):
        category = await categories.create_category(payload.get("name"))
        return category.to_api_dict()

    @router.put("/categories/{category_id}")
    async def rename_category(
        category_id: str,
        payload: dict[str, Any] = Body(default_factory=dict),
    ):
        category = await categories.rename_category(
            _parse_id(category_id, "category"),
            payload.get("name"),
        )
        return {"success": True, **category.to_api_dict()}

    @router.delete("/categories/{category_id}", status_code=204)
    async def delete_category(category_id: str):
        await categories.delete_category(_parse_id(category_id, "category"))
        return Response(status_code=204)

    @router.get("/expenses")
    async def list_expenses(categoryId: Optional[str] = None):
        reference_id = _parse_reference_filter(categoryId)
        return [e.to_api_dict() for e in await expenses.list_expenses(reference_id)]

    @router.post("/expenses", status_code=201)
    async def create_expense(payload: dict[str, Any] = Body(default_factory=dict)):
        expense = await expenses.create_expense(**_expense_fields(payload))
        return expense.to_api_dict()

    @router.put("/expenses/{expense_id}")
    async def replace_expense(
        expense_id: str,
        payload: dict[str, Any] = Body(default_factory=dict),
    ):
        expense = await expenses.replace_expense(
            _parse_id(expense_id, "expense"),
            **_expense_fields(payload),
        )
        return expense.to_api_dict()

    @router.delete("/expenses/{expense_id}", status_code=204)
    async def delete_expense(expense_id: str):
        await expenses.delete_expense(_parse_id(expense_id, "expense"))
        return Response(status_code=204)

    return router


def create_api(
    components: Optional[AppComponents] = None,
    seed_defaults: Optional[bool] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        components: Pre-built components (tests pass in-memory ones);
                    defaults to create_app_components()
        seed_defaults: Seed default categories at startup; defaults to the
                       seed_default_categories setting
    """
    settings = get_settings()
    components = components or create_app_components()
    if seed_defaults is None:
        seed_defaults = settings.app.seed_default_categories

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if seed_defaults:
            await components.category_store.seed_defaults()
        yield

    app = FastAPI(title="Expense Tracker", version="1.0.0", lifespan=lifespan)
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
        allow_credentials=True,
    )

    @app.exception_handler(ExpenseTrackerError)
    async def handle_tracker_error(request: Request, exc: ExpenseTrackerError):
        status = status_for(exc)
        if status >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
            await components.audit_logger.log_error(exc, details={"path": request.url.path})
        else:
            logger.info("request_rejected", path=request.url.path, kind=exc.kind)
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"kind": ValidationError.kind, "error": "Malformed request body"},
        )

    router = build_router(components)
    app.include_router(router)
    app.include_router(router, prefix="/api")
    return app


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging("DEBUG" if settings.app.debug_mode else settings.app.log_level)
    uvicorn.run(create_api(), host=settings.api.host, port=settings.api.port)


if __name__ == "__main__":
    main()
