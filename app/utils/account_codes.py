"""
Account code helpers.

Codes are strings such as ``"1010"``, ``"4031"`` or ``"5010-02"``. The leading
digits carry the classification used by the ledger rules.
"""

import re
from typing import Optional, Tuple

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


def numeric_prefix(acct_code: Optional[str]) -> Optional[int]:
    """Return the leading integer of an account code, or None."""
    if not acct_code:
        return None
    match = _LEADING_DIGITS.match(acct_code)
    if match is None:
        return None
    return int(match.group(1))


def natural_sort_key(acct_code: str) -> Tuple[int, int, str]:
    """Order codes by numeric prefix first, then lexically. Codes without digits sort last."""
    prefix = numeric_prefix(acct_code)
    if prefix is None:
        return (1, 0, acct_code)
    return (0, prefix, acct_code)
