"""
Ledger Reports - Background Tasks Package

Celery background tasks.
"""
