"""
Ledger Reports - Report Assembler

Drives one report run: loads the account universe and beginning balances,
sums the opening movement windows once for the whole range, fetches the
period lines and builds every account's ledger in account-number order.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reference import AccountCode, AccountMain, BeginningBalance
from app.schemas.general_ledger import (
    AccountRange,
    DateRange,
    GeneralLedgerRequest,
    StatementFilter,
)
from app.services.ledger_builder import GeneralLedgerReport, build_account_ledger
from app.services.opening_balance import LedgerAccount, OpeningBalanceResolver
from app.services.transaction_sources import (
    DEFAULT_TRANSACTION_SOURCES,
    TransactionSourceAdapter,
    fetch_period_lines,
    sum_net_movements,
)
from app.utils.account_codes import natural_sort_key, numeric_prefix
from app.utils.error_handling import NoAccountsInRangeException, TransactionSourceException
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], Awaitable[None]]

# Progress checkpoints; the account loop spreads linearly between the last two
PROGRESS_LOADING = 1
PROGRESS_ACCOUNTS = 5
PROGRESS_BEGINNING_BALANCES = 8
PROGRESS_OPENING_MOVEMENTS = 12
PROGRESS_PERIOD_LINES = 28
PROGRESS_ASSEMBLY_START = 40
PROGRESS_ASSEMBLY_END = 85


async def _ignore_progress(progress: int, message: str) -> None:
    return None


def normalize_account_range(account_range: AccountRange) -> AccountRange:
    """Swap the bounds when the range was entered backwards."""
    start, end = account_range.start, account_range.end
    if start <= end:
        return account_range
    return AccountRange(start=end, end=start)


def _account_order(account: AccountCode) -> Tuple[int, int, Tuple[int, int, str]]:
    if account.acct_number is None:
        return (1, 0, natural_sort_key(account.acct_code))
    return (0, account.acct_number, natural_sort_key(account.acct_code))


class GeneralLedgerAssembler:
    """Builds GeneralLedgerReport objects from the database."""

    def __init__(
        self,
        session: AsyncSession,
        resolver: Optional[OpeningBalanceResolver] = None,
        sources: Sequence[TransactionSourceAdapter] = DEFAULT_TRANSACTION_SOURCES,
    ):
        self.session = session
        self.resolver = resolver or OpeningBalanceResolver()
        self.sources = sources

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise TransactionSourceException("reference data", exc) from exc

    # ===========================================
    # REFERENCE DATA
    # ===========================================

    async def list_accounts(self, tenant_id: int) -> List[AccountCode]:
        """Active accounts of a company, naturally ordered, for the range pickers."""
        if tenant_id is None or tenant_id <= 0:
            return []

        result = await self._execute(
            select(AccountCode).where(
                AccountCode.company_id == tenant_id,
                AccountCode.active_flag.is_(True),
            )
        )
        accounts = list(result.scalars().all())
        accounts.sort(key=lambda account: natural_sort_key(account.acct_code))
        return accounts

    async def load_accounts(
        self,
        tenant_id: int,
        account_range: AccountRange,
        statement_filter: StatementFilter = StatementFilter.ALL,
    ) -> List[LedgerAccount]:
        """Active accounts of the range, classified and in account-number order."""
        if tenant_id is None or tenant_id <= 0:
            return []

        conditions = [
            AccountCode.company_id == tenant_id,
            AccountCode.active_flag.is_(True),
            AccountCode.acct_code >= account_range.start,
            AccountCode.acct_code <= account_range.end,
        ]
        if statement_filter is StatementFilter.ACTIVE:
            conditions.append(or_(AccountCode.exclude.is_(False), AccountCode.exclude.is_(None)))
        elif statement_filter is StatementFilter.BALANCE_SHEET:
            conditions.append(AccountCode.fs.ilike("BS%"))
        elif statement_filter is StatementFilter.INCOME_STATEMENT:
            conditions.append(AccountCode.fs.ilike("IS%"))

        stmt = (
            select(AccountCode, AccountMain.main_acct.label("main_name"))
            .outerjoin(
                AccountMain,
                and_(
                    AccountMain.main_acct_code == AccountCode.main_acct_code,
                    AccountMain.company_id == AccountCode.company_id,
                ),
            )
            .where(*conditions)
        )
        result = await self._execute(stmt)
        rows = result.all()

        ordered = sorted(rows, key=lambda row: _account_order(row[0]))
        return [
            self.resolver.classify(
                acct_code=account.acct_code,
                acct_desc=account.acct_desc,
                fs=account.fs,
                main_acct=main_name or account.main_acct,
                acct_number=account.acct_number,
            )
            for account, main_name in ordered
        ]

    async def load_beginning_balances(
        self,
        tenant_id: int,
        account_range: Optional[AccountRange] = None,
    ) -> Dict[str, Decimal]:
        """Baseline amounts keyed by account code."""
        if tenant_id is None or tenant_id <= 0:
            return {}

        conditions = [BeginningBalance.company_id == tenant_id]
        if account_range is not None:
            conditions.append(BeginningBalance.account_code >= account_range.start)
            conditions.append(BeginningBalance.account_code <= account_range.end)

        result = await self._execute(
            select(BeginningBalance.account_code, BeginningBalance.amount).where(*conditions)
        )
        return {row.account_code: to_decimal(row.amount) for row in result.all()}

    async def derive_retained_earnings(self, tenant_id: int, year: int) -> Decimal:
        """
        Retained earnings carried into ``year``.

        Baseline balances of every account at or above the threshold, plus
        the full-year net income (accounts above the threshold) of each year
        between the baseline year and ``year``.
        """
        threshold = self.resolver.pnl_threshold
        balances = await self.load_beginning_balances(tenant_id)
        total = ZERO
        for code, amount in balances.items():
            prefix = numeric_prefix(code)
            if prefix is not None and prefix >= threshold:
                total += amount

        flow_window = DateRange(
            start=date(self.resolver.baseline_date.year + 1, 1, 1),
            end=date(year - 1, 12, 31),
        )
        if flow_window.is_empty:
            return total

        movements = await sum_net_movements(self.session, tenant_id, None, flow_window, self.sources)
        for code, net in movements.items():
            prefix = numeric_prefix(code)
            if prefix is not None and prefix > threshold:
                total += net
        logger.debug(f"Retained earnings for company {tenant_id}, {year}: {total}")
        return total

    # ===========================================
    # ASSEMBLY
    # ===========================================

    async def assemble(
        self,
        request: GeneralLedgerRequest,
        progress: Optional[ProgressCallback] = None,
    ) -> GeneralLedgerReport:
        notify = progress or _ignore_progress
        tenant_id = request.tenant_id
        account_range = normalize_account_range(request.account_range)
        date_range = request.date_range
        start_date = date_range.start

        await notify(PROGRESS_LOADING, "Loading accounts...")
        accounts = await self.load_accounts(tenant_id, account_range, request.statement_filter)
        if not accounts:
            raise NoAccountsInRangeException(account_range.start, account_range.end)
        await notify(PROGRESS_ACCOUNTS, f"{len(accounts)} accounts in range")

        await notify(PROGRESS_BEGINNING_BALANCES, "Loading beginning balances...")
        beginning = await self.load_beginning_balances(tenant_id, account_range)

        carry_forward = request.retained_earnings_carry_forward
        if (
            carry_forward is None
            and request.derive_retained_earnings
            and any(account.is_retained_earnings for account in accounts)
        ):
            carry_forward = await self.derive_retained_earnings(tenant_id, start_date.year)

        await notify(PROGRESS_OPENING_MOVEMENTS, "Computing opening balances...")
        windows: Dict[Tuple[date, date], DateRange] = {}
        for account in accounts:
            window = self.resolver.movement_window(self.resolver.regime_for(account), start_date)
            if window is not None:
                windows[(window.start, window.end)] = window

        movements: Dict[Tuple[date, date], Dict[str, Decimal]] = {}
        for key, window in windows.items():
            movements[key] = await sum_net_movements(
                self.session, tenant_id, account_range, window, self.sources
            )

        await notify(PROGRESS_PERIOD_LINES, "Loading period transactions...")
        period_lines = await fetch_period_lines(
            self.session, tenant_id, account_range, date_range, self.sources
        )

        await notify(PROGRESS_ASSEMBLY_START, "Assembling ledger...")
        report = GeneralLedgerReport(
            tenant_id=tenant_id,
            account_range=account_range,
            date_range=date_range,
        )
        total = len(accounts)
        span = PROGRESS_ASSEMBLY_END - PROGRESS_ASSEMBLY_START
        last_reported = PROGRESS_ASSEMBLY_START

        for index, account in enumerate(accounts, start=1):
            window = self.resolver.movement_window(self.resolver.regime_for(account), start_date)
            movement = ZERO
            if window is not None:
                movement = movements[(window.start, window.end)].get(account.acct_code, ZERO)

            opening = self.resolver.resolve(
                account,
                start_date,
                beginning_balance=beginning.get(account.acct_code, ZERO),
                movement=movement,
                carry_forward=carry_forward,
            )
            report.accounts.append(
                build_account_ledger(
                    account,
                    opening,
                    period_lines.get(account.acct_code, []),
                    start_date,
                )
            )

            current = PROGRESS_ASSEMBLY_START + (span * index) // total
            if current > last_reported:
                last_reported = current
                await notify(current, f"Assembling {account.acct_code}...")

        logger.info(
            f"Assembled {total} accounts for company {tenant_id} "
            f"({date_range.start} to {date_range.end})"
        )
        return report
