"""
Decimal helpers for ledger amounts.

Balances accumulate unrounded; values are rounded to cents only when they are
compared or written out.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a database or request value to Decimal (None becomes zero)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Format an amount as ``1,234.50``."""
    return f"{round_money(value):,.2f}"
