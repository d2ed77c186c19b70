"""Referential integrity package."""

from expense_tracker.integrity.gate import ReferentialIntegrityGate

__all__ = ["ReferentialIntegrityGate"]
