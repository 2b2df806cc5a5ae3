"""
Ledger Reports - Ledger Builder

Turns one account's opening balance and its period lines into ledger rows:
an opening row, a month-open marker whenever the posting month changes, and
one detail row per line with a running balance. Also holds the report model
the renderer consumes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.schemas.general_ledger import AccountRange, DateRange
from app.services.opening_balance import LedgerAccount
from app.services.transaction_sources import TransactionDetailLine
from app.utils.money import ZERO, round_money

BALANCE_TOLERANCE = Decimal("0.005")


class LedgerRowKind(str, Enum):
    OPENING = "opening"
    MONTH_OPEN = "month_open"
    DETAIL = "detail"


@dataclass(frozen=True)
class LedgerRow:
    """
    One row of an account's ledger.

    Opening and month-open rows carry no debit or credit; their ``ending``
    is the balance carried in. Detail rows carry the running balance after
    applying the line.
    """
    kind: LedgerRowKind
    acct_code: str
    post_date: date
    ending: Decimal
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    category: Optional[str] = None
    batch_no: Optional[int] = None
    reference_no: Optional[str] = None
    party: Optional[str] = None
    comment: Optional[str] = None

    @classmethod
    def opening(cls, account: LedgerAccount, start_date: date, balance: Decimal) -> "LedgerRow":
        return cls(
            kind=LedgerRowKind.OPENING,
            acct_code=account.acct_code,
            post_date=start_date,
            ending=balance,
            comment=f"Beginning Balances ({account.acct_desc})",
        )

    @classmethod
    def month_open(cls, acct_code: str, month_start: date, balance: Decimal) -> "LedgerRow":
        return cls(
            kind=LedgerRowKind.MONTH_OPEN,
            acct_code=acct_code,
            post_date=month_start,
            ending=balance,
            comment="Beginning Balance",
        )

    @classmethod
    def detail(cls, line: TransactionDetailLine, ending: Decimal) -> "LedgerRow":
        return cls(
            kind=LedgerRowKind.DETAIL,
            acct_code=line.acct_code,
            post_date=line.post_date,
            ending=ending,
            debit=line.debit,
            credit=line.credit,
            category=line.category,
            batch_no=line.batch_no,
            reference_no=line.reference_no,
            party=line.party,
            comment=line.comment,
        )

    @property
    def is_month_marker(self) -> bool:
        """Opening rows mark the first month; month-open rows mark the rest."""
        return self.kind in (LedgerRowKind.OPENING, LedgerRowKind.MONTH_OPEN)

    @property
    def beginning(self) -> Optional[Decimal]:
        if self.kind is LedgerRowKind.DETAIL:
            return None
        return self.ending

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "acct_code": self.acct_code,
            "post_date": self.post_date.isoformat(),
            "category": self.category,
            "batch_no": self.batch_no,
            "reference_no": self.reference_no,
            "party": self.party,
            "comment": self.comment,
            "debit": str(round_money(self.debit)),
            "credit": str(round_money(self.credit)),
            "ending": str(round_money(self.ending)),
        }


@dataclass(frozen=True)
class AccountTotals:
    debit: Decimal
    credit: Decimal
    ending: Decimal


@dataclass
class MonthSubtotal:
    year: int
    month: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO

    @property
    def label(self) -> str:
        return date(self.year, self.month, 1).strftime("%B %Y")


@dataclass
class AccountLedger:
    account: LedgerAccount
    opening_balance: Decimal
    rows: List[LedgerRow]
    totals: AccountTotals
    month_subtotals: List[MonthSubtotal] = field(default_factory=list)

    @property
    def detail_rows(self) -> List[LedgerRow]:
        return [row for row in self.rows if row.kind is LedgerRowKind.DETAIL]

    @property
    def month_markers(self) -> List[LedgerRow]:
        return [row for row in self.rows if row.is_month_marker]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "acct_code": self.account.acct_code,
            "acct_desc": self.account.acct_desc,
            "main_acct": self.account.main_acct,
            "opening_balance": str(round_money(self.opening_balance)),
            "rows": [row.to_dict() for row in self.rows],
            "totals": {
                "debit": str(round_money(self.totals.debit)),
                "credit": str(round_money(self.totals.credit)),
                "ending": str(round_money(self.totals.ending)),
            },
        }


def _month_key(value: date) -> Tuple[int, int]:
    return (value.year, value.month)


def build_account_ledger(
    account: LedgerAccount,
    opening_balance: Decimal,
    lines: Iterable[TransactionDetailLine],
    start_date: date,
) -> AccountLedger:
    """
    Build the rows of one account.

    ``lines`` must already be in (post_date, batch_no) order. The retained
    earnings account ignores them and shows only its constant balance.
    """
    rows = [LedgerRow.opening(account, start_date, opening_balance)]

    if account.is_retained_earnings:
        return AccountLedger(
            account=account,
            opening_balance=opening_balance,
            rows=rows,
            totals=AccountTotals(debit=ZERO, credit=ZERO, ending=opening_balance),
        )

    running = opening_balance
    total_debit = ZERO
    total_credit = ZERO
    last_month = _month_key(start_date)
    subtotals: Dict[Tuple[int, int], MonthSubtotal] = {}

    for line in lines:
        month = _month_key(line.post_date)
        if month != last_month:
            rows.append(LedgerRow.month_open(account.acct_code, line.post_date.replace(day=1), running))
            last_month = month

        running += line.debit - line.credit
        total_debit += line.debit
        total_credit += line.credit
        rows.append(LedgerRow.detail(line, running))

        subtotal = subtotals.get(month)
        if subtotal is None:
            subtotal = subtotals[month] = MonthSubtotal(year=month[0], month=month[1])
        subtotal.debit += line.debit
        subtotal.credit += line.credit

    return AccountLedger(
        account=account,
        opening_balance=opening_balance,
        rows=rows,
        totals=AccountTotals(debit=total_debit, credit=total_credit, ending=running),
        month_subtotals=list(subtotals.values()),
    )


# ===========================================
# REPORT MODEL
# ===========================================

@dataclass(frozen=True)
class TrialBalanceLine:
    acct_code: str
    acct_desc: str
    main_acct: Optional[str]
    beginning: Decimal
    debit: Decimal
    credit: Decimal
    ending: Decimal


@dataclass
class GeneralLedgerReport:
    """Finished report for one tenant, account range and date range."""
    tenant_id: int
    account_range: AccountRange
    date_range: DateRange
    accounts: List[AccountLedger] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def total_debit(self) -> Decimal:
        return sum((ledger.totals.debit for ledger in self.accounts), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((ledger.totals.credit for ledger in self.accounts), ZERO)

    def is_balanced(self, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
        """Total debits equal total credits within ``tolerance``."""
        return abs(round_money(self.total_debit) - round_money(self.total_credit)) < tolerance

    def trial_balance(self) -> List[TrialBalanceLine]:
        return [
            TrialBalanceLine(
                acct_code=ledger.account.acct_code,
                acct_desc=ledger.account.acct_desc,
                main_acct=ledger.account.main_acct,
                beginning=ledger.opening_balance,
                debit=ledger.totals.debit,
                credit=ledger.totals.credit,
                ending=ledger.totals.ending,
            )
            for ledger in self.accounts
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "account_range": self.account_range.model_dump(),
            "date_range": self.date_range.model_dump(mode="json"),
            "generated_at": self.generated_at.isoformat(),
            "accounts": [ledger.to_dict() for ledger in self.accounts],
            "total_debit": str(round_money(self.total_debit)),
            "total_credit": str(round_money(self.total_credit)),
        }
