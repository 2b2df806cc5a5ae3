"""
Ledger Reports - Routers Package

FastAPI route handlers.

Routers:
- general_ledger: report tickets, status polling, downloads and account pickers
"""

from app.routers import general_ledger

__all__ = ["general_ledger"]
