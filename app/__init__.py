"""
Ledger Reports application package.
"""
