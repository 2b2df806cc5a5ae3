"""
Ledger Reports - Transaction Source Adapters

Each book of original entry (general journal, cash disbursements, cash
receipts, cash purchases, cash sales) is read through one adapter with the
same interface. The rest of the engine only sees TransactionDetailLine
objects and their one-letter category.

Every adapter:
- reads non-cancelled headers of the requesting company only
- returns nothing for a company id <= 0 rather than querying all companies
- groups detail lines per (header, account) the way the journals are posted
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from itertools import chain
from typing import Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import and_, func, null, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.journals import (
    CashDisbursement,
    CashDisbursementDetail,
    CashPurchase,
    CashPurchaseDetail,
    CashReceipt,
    CashReceiptDetail,
    CashSale,
    CashSaleDetail,
    GeneralJournal,
    GeneralJournalDetail,
)
from app.models.reference import Customer, Vendor
from app.schemas.general_ledger import AccountRange, DateRange
from app.utils.error_handling import TransactionSourceException
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionDetailLine:
    """One posted line, summed per header and account."""
    category: str
    batch_no: int
    post_date: date
    reference_no: Optional[str]
    party: Optional[str]
    comment: Optional[str]
    acct_code: str
    debit: Decimal
    credit: Decimal

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit


def _is_valid_tenant(tenant_id: Optional[int]) -> bool:
    return tenant_id is not None and tenant_id > 0


class TransactionSourceAdapter:
    """
    Uniform read access to one journal.

    Subclasses only declare which models and columns hold the posting date,
    reference number, comment and counterparty.
    """

    category: str = ""
    header_model: Type = None
    detail_model: Type = None
    date_field: str = ""
    reference_field: str = ""
    comment_field: str = "explanation"

    # Counterparty lookup: header column holding the code, directory model and its columns
    party_field: Optional[str] = None
    party_model: Optional[Type] = None
    party_code_field: Optional[str] = None
    party_name_field: Optional[str] = None

    def _header_conditions(self, tenant_id: int, date_range: DateRange) -> list:
        header = self.header_model
        post_date = getattr(header, self.date_field)
        return [
            header.company_id == tenant_id,
            header.is_cancelled.is_(False),
            post_date >= date_range.start,
            post_date <= date_range.end,
        ]

    def _account_conditions(self, account_range: Optional[AccountRange]) -> list:
        if account_range is None:
            return []
        detail = self.detail_model
        return [
            detail.acct_code >= account_range.start,
            detail.acct_code <= account_range.end,
        ]

    async def _execute(self, session: AsyncSession, stmt):
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(f"Transaction source {self.category} query failed: {exc}")
            raise TransactionSourceException(self.category, exc) from exc
        return result.all()

    async def query(
        self,
        session: AsyncSession,
        tenant_id: int,
        account_range: AccountRange,
        date_range: DateRange,
    ) -> List[TransactionDetailLine]:
        """Return detail lines for the period, ordered by (post_date, batch_no)."""
        if not _is_valid_tenant(tenant_id) or date_range.is_empty:
            return []

        header = self.header_model
        detail = self.detail_model
        post_date = getattr(header, self.date_field)
        reference = getattr(header, self.reference_field)
        comment = getattr(header, self.comment_field)

        if self.party_model is not None:
            party_name = getattr(self.party_model, self.party_name_field)
            party_column = party_name.label("party")
        else:
            party_name = None
            party_column = null().label("party")

        stmt = (
            select(
                header.id.label("batch_no"),
                post_date.label("post_date"),
                reference.label("reference_no"),
                party_column,
                comment.label("comment"),
                detail.acct_code.label("acct_code"),
                func.coalesce(func.sum(detail.debit), 0).label("debit"),
                func.coalesce(func.sum(detail.credit), 0).label("credit"),
            )
            .select_from(detail)
            .join(header, detail.transaction_id == header.id)
        )
        if self.party_model is not None:
            party = self.party_model
            stmt = stmt.outerjoin(
                party,
                and_(
                    getattr(party, self.party_code_field) == getattr(header, self.party_field),
                    party.company_id == header.company_id,
                ),
            )

        group_columns = [header.id, post_date, reference, comment, detail.acct_code]
        if party_name is not None:
            group_columns.append(party_name)

        stmt = (
            stmt.where(
                *self._header_conditions(tenant_id, date_range),
                *self._account_conditions(account_range),
            )
            .group_by(*group_columns)
            .order_by(post_date, header.id, detail.acct_code)
        )

        rows = await self._execute(session, stmt)
        return [
            TransactionDetailLine(
                category=self.category,
                batch_no=row.batch_no,
                post_date=row.post_date,
                reference_no=row.reference_no,
                party=row.party,
                comment=row.comment,
                acct_code=row.acct_code,
                debit=to_decimal(row.debit),
                credit=to_decimal(row.credit),
            )
            for row in rows
        ]

    async def sum_movements(
        self,
        session: AsyncSession,
        tenant_id: int,
        account_range: Optional[AccountRange],
        date_range: DateRange,
    ) -> Dict[str, Decimal]:
        """Net movement (debit - credit) per account code over the window.

        A ``None`` account range covers every account of the tenant.
        """
        if not _is_valid_tenant(tenant_id) or date_range.is_empty:
            return {}

        header = self.header_model
        detail = self.detail_model
        stmt = (
            select(
                detail.acct_code,
                func.coalesce(func.sum(detail.debit), 0).label("debit"),
                func.coalesce(func.sum(detail.credit), 0).label("credit"),
            )
            .select_from(detail)
            .join(header, detail.transaction_id == header.id)
            .where(
                *self._header_conditions(tenant_id, date_range),
                *self._account_conditions(account_range),
            )
            .group_by(detail.acct_code)
        )

        rows = await self._execute(session, stmt)
        return {
            row.acct_code: to_decimal(row.debit) - to_decimal(row.credit)
            for row in rows
        }


class GeneralJournalSource(TransactionSourceAdapter):
    category = "G"
    header_model = GeneralJournal
    detail_model = GeneralJournalDetail
    date_field = "gen_acct_date"
    reference_field = "ga_no"


class CashDisbursementSource(TransactionSourceAdapter):
    category = "D"
    header_model = CashDisbursement
    detail_model = CashDisbursementDetail
    date_field = "disburse_date"
    reference_field = "cd_no"
    party_field = "vendor_code"
    party_model = Vendor
    party_code_field = "vendor_code"
    party_name_field = "vendor_name"


class CashReceiptSource(TransactionSourceAdapter):
    category = "R"
    header_model = CashReceipt
    detail_model = CashReceiptDetail
    date_field = "receipt_date"
    reference_field = "cr_no"
    comment_field = "details_text"
    party_field = "customer_code"
    party_model = Customer
    party_code_field = "customer_code"
    party_name_field = "customer_name"


class CashPurchaseSource(TransactionSourceAdapter):
    category = "P"
    header_model = CashPurchase
    detail_model = CashPurchaseDetail
    date_field = "purchase_date"
    reference_field = "cp_no"
    party_field = "vendor_code"
    party_model = Vendor
    party_code_field = "vendor_code"
    party_name_field = "vendor_name"


class CashSaleSource(TransactionSourceAdapter):
    category = "S"
    header_model = CashSale
    detail_model = CashSaleDetail
    date_field = "sales_date"
    reference_field = "cs_no"
    party_field = "customer_code"
    party_model = Customer
    party_code_field = "customer_code"
    party_name_field = "customer_name"


# Fixed category order; equal (post_date, batch_no) lines keep this order
DEFAULT_TRANSACTION_SOURCES: Sequence[TransactionSourceAdapter] = (
    GeneralJournalSource(),
    CashDisbursementSource(),
    CashReceiptSource(),
    CashPurchaseSource(),
    CashSaleSource(),
)


def merge_transaction_lines(
    batches: Iterable[Iterable[TransactionDetailLine]],
) -> List[TransactionDetailLine]:
    """Merge per-source lines into one stream sorted by (post_date, batch_no)."""
    return sorted(chain.from_iterable(batches), key=lambda line: (line.post_date, line.batch_no))


async def fetch_period_lines(
    session: AsyncSession,
    tenant_id: int,
    account_range: AccountRange,
    date_range: DateRange,
    sources: Sequence[TransactionSourceAdapter] = DEFAULT_TRANSACTION_SOURCES,
) -> Dict[str, List[TransactionDetailLine]]:
    """All period lines of the range, merged and grouped per account code."""
    batches = []
    for source in sources:
        batches.append(await source.query(session, tenant_id, account_range, date_range))

    by_account: Dict[str, List[TransactionDetailLine]] = defaultdict(list)
    for line in merge_transaction_lines(batches):
        by_account[line.acct_code].append(line)
    return dict(by_account)


async def sum_net_movements(
    session: AsyncSession,
    tenant_id: int,
    account_range: Optional[AccountRange],
    date_range: DateRange,
    sources: Sequence[TransactionSourceAdapter] = DEFAULT_TRANSACTION_SOURCES,
) -> Dict[str, Decimal]:
    """Net movement per account code summed across all sources."""
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for source in sources:
        movements = await source.sum_movements(session, tenant_id, account_range, date_range)
        for acct_code, net in movements.items():
            totals[acct_code] += net
    return dict(totals)
