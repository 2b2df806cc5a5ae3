"""
Ledger Reports - Services Package

Ledger computation, report rendering and the report ticket lifecycle.
"""
