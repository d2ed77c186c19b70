"""
Expense Tracker - Source Package

A small personal-finance application: expenses are recorded against
user-defined categories and persisted in a document store.

DESIGN PRINCIPLES:
1. Stores are authoritative, the client cache is derived
2. Fail fast with a specific error kind
3. No silent corrections (only orphaned expenses are soft-dropped)
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
