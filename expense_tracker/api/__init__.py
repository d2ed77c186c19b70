"""HTTP API package."""

from expense_tracker.api.app import create_api, status_for

__all__ = ["create_api", "status_for"]
