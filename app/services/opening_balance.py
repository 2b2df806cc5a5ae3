"""
Ledger Reports - Opening Balance Resolver

An account's opening balance for a report window depends on which of three
regimes it falls under. The regime is picked once per account:

1. Retained earnings: the designated account carries a constant (the prior
   fiscal year-end carry-forward, or its raw beginning balance).
2. Profit and loss: resets to zero every January 1. A mid-year start in the
   baseline year backs the movement since January 1 out of the baseline
   snapshot; a mid-year start in any other year uses year-to-date movement.
3. Balance sheet: baseline snapshot plus everything posted since.

The resolver is pure. The caller fetches the beginning balance and the net
movement for the window that movement_window() asks for.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.config import settings
from app.schemas.general_ledger import DateRange
from app.utils.account_codes import numeric_prefix
from app.utils.money import ZERO

ONE_DAY = timedelta(days=1)


class OpeningRegime(str, Enum):
    RETAINED_EARNINGS = "retained_earnings"
    PROFIT_AND_LOSS = "profit_and_loss"
    BALANCE_SHEET = "balance_sheet"


@dataclass(frozen=True)
class LedgerAccount:
    """Account attributes as classified for one report run."""
    acct_code: str
    acct_desc: str
    is_pnl: bool = False
    is_retained_earnings: bool = False
    main_acct: Optional[str] = None
    acct_number: Optional[int] = None
    fs: Optional[str] = None


class OpeningBalanceResolver:
    """Classifies accounts and computes their opening balances."""

    def __init__(
        self,
        baseline_date: Optional[date] = None,
        retained_earnings_code: Optional[str] = None,
        pnl_threshold: Optional[int] = None,
    ):
        self.baseline_date = baseline_date or settings.baseline_date
        self.retained_earnings_code = retained_earnings_code or settings.retained_earnings_account_code
        self.pnl_threshold = pnl_threshold if pnl_threshold is not None else settings.pnl_account_threshold

    # ===========================================
    # CLASSIFICATION
    # ===========================================

    def is_retained_earnings(self, acct_code: str) -> bool:
        return acct_code.strip() == self.retained_earnings_code

    def is_pnl(self, acct_code: str, fs: Optional[str]) -> bool:
        """Income statement tag, or numeric prefix above the threshold."""
        if self.is_retained_earnings(acct_code):
            return False
        if fs and fs.strip().upper().startswith("IS"):
            return True
        prefix = numeric_prefix(acct_code)
        return prefix is not None and prefix > self.pnl_threshold

    def classify(
        self,
        acct_code: str,
        acct_desc: str = "",
        fs: Optional[str] = None,
        main_acct: Optional[str] = None,
        acct_number: Optional[int] = None,
    ) -> LedgerAccount:
        return LedgerAccount(
            acct_code=acct_code,
            acct_desc=acct_desc or "",
            is_pnl=self.is_pnl(acct_code, fs),
            is_retained_earnings=self.is_retained_earnings(acct_code),
            main_acct=main_acct,
            acct_number=acct_number,
            fs=fs,
        )

    def regime_for(self, account: LedgerAccount) -> OpeningRegime:
        if account.is_retained_earnings:
            return OpeningRegime.RETAINED_EARNINGS
        if account.is_pnl:
            return OpeningRegime.PROFIT_AND_LOSS
        return OpeningRegime.BALANCE_SHEET

    # ===========================================
    # MOVEMENT WINDOWS
    # ===========================================

    def movement_window(self, regime: OpeningRegime, start_date: date) -> Optional[DateRange]:
        """
        The posting window whose net movement feeds the opening balance.

        Returns None when the regime needs no movement for this start date.
        """
        if regime is OpeningRegime.RETAINED_EARNINGS:
            return None

        if regime is OpeningRegime.PROFIT_AND_LOSS:
            if start_date.month == 1 and start_date.day == 1:
                return None
            if start_date.year == self.baseline_date.year:
                return DateRange(start=date(self.baseline_date.year, 1, 1), end=self.baseline_date)
            return DateRange(start=date(start_date.year, 1, 1), end=start_date - ONE_DAY)

        window = DateRange(start=self.baseline_date + ONE_DAY, end=start_date - ONE_DAY)
        if window.is_empty:
            return None
        return window

    # ===========================================
    # RESOLUTION
    # ===========================================

    def resolve(
        self,
        account: LedgerAccount,
        start_date: date,
        beginning_balance: Decimal = ZERO,
        movement: Decimal = ZERO,
        carry_forward: Optional[Decimal] = None,
    ) -> Decimal:
        """
        Opening balance of ``account`` at ``start_date``.

        ``movement`` is the net movement over movement_window() for the
        account's regime; it is ignored when that window is None.
        """
        regime = self.regime_for(account)

        if regime is OpeningRegime.RETAINED_EARNINGS:
            return carry_forward if carry_forward is not None else beginning_balance

        window = self.movement_window(regime, start_date)

        if regime is OpeningRegime.PROFIT_AND_LOSS:
            if window is None:
                return ZERO
            if start_date.year == self.baseline_date.year:
                return beginning_balance - movement
            return movement

        if window is None:
            return beginning_balance
        return beginning_balance + movement
