"""
Ledger Reports - Test Configuration

Pytest fixtures for testing the ledger engine, the ticket lifecycle and the API.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_async_session
from app.models import (
    AccountCode,
    AccountMain,
    BeginningBalance,
    CashDisbursement,
    CashDisbursementDetail,
    CashPurchase,
    CashPurchaseDetail,
    CashReceipt,
    CashReceiptDetail,
    CashSale,
    CashSaleDetail,
    Customer,
    GeneralJournal,
    GeneralJournalDetail,
    Vendor,
)
from app.services.opening_balance import OpeningBalanceResolver
from app.services.report_job_service import BackgroundReportDispatcher, ReportJobService
from app.services.report_renderer import LedgerDocumentRenderer
from app.services.report_storage import ReportStorage
from app.services.ticket_store import InMemoryTicketStore
from main import app


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASELINE = date(2024, 12, 31)
COMPANY_ID = 1
OTHER_COMPANY_ID = 2

# category -> (header model, detail model, date column, reference column, party column)
JOURNALS = {
    "G": (GeneralJournal, GeneralJournalDetail, "gen_acct_date", "ga_no", None),
    "D": (CashDisbursement, CashDisbursementDetail, "disburse_date", "cd_no", "vendor_code"),
    "R": (CashReceipt, CashReceiptDetail, "receipt_date", "cr_no", "customer_code"),
    "P": (CashPurchase, CashPurchaseDetail, "purchase_date", "cp_no", "vendor_code"),
    "S": (CashSale, CashSaleDetail, "sales_date", "cs_no", "customer_code"),
}

Line = Tuple[str, str, str]


# ===========================================
# SEED HELPERS
# ===========================================

def _amount(value) -> Decimal:
    return Decimal(str(value))


async def add_account(
    session: AsyncSession,
    acct_code: str,
    acct_desc: str,
    company_id: int = COMPANY_ID,
    acct_number: Optional[int] = None,
    fs: Optional[str] = None,
    main_acct_code: Optional[str] = None,
    exclude: Optional[bool] = None,
    active: bool = True,
) -> AccountCode:
    account = AccountCode(
        company_id=company_id,
        acct_code=acct_code,
        acct_desc=acct_desc,
        acct_number=acct_number,
        fs=fs,
        main_acct_code=main_acct_code,
        exclude=exclude,
        active_flag=active,
    )
    session.add(account)
    await session.commit()
    return account


async def add_beginning_balance(
    session: AsyncSession,
    account_code: str,
    amount,
    company_id: int = COMPANY_ID,
) -> BeginningBalance:
    balance = BeginningBalance(company_id=company_id, account_code=account_code, amount=_amount(amount))
    session.add(balance)
    await session.commit()
    return balance


async def post_entry(
    session: AsyncSession,
    category: str,
    post_date: date,
    lines: Iterable[Line],
    reference: str = "REF",
    company_id: int = COMPANY_ID,
    party_code: Optional[str] = None,
    comment: Optional[str] = None,
    cancelled: bool = False,
):
    """Post one journal document. ``lines`` are (acct_code, debit, credit)."""
    header_model, detail_model, date_field, reference_field, party_field = JOURNALS[category]
    details = [
        detail_model(acct_code=code, debit=_amount(debit), credit=_amount(credit))
        for code, debit, credit in lines
    ]
    fields = {
        "company_id": company_id,
        date_field: post_date,
        reference_field: reference,
        "is_cancelled": cancelled,
        "sum_debit": sum((d.debit for d in details), Decimal("0")),
        "sum_credit": sum((d.credit for d in details), Decimal("0")),
    }
    if party_field is not None:
        fields[party_field] = party_code
    if category == "R":
        fields["details_text"] = comment
    else:
        fields["explanation"] = comment

    header = header_model(**fields)
    header.details = details
    session.add(header)
    await session.commit()
    return header


# ===========================================
# DATABASE FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ledger_books(db_session: AsyncSession):
    """
    Chart of accounts, baseline balances and a quarter of postings for company 1,
    plus noise that must never reach its reports.

    Header ids (batch numbers) per book follow insertion order.
    """
    session = db_session
    session.add(AccountMain(company_id=COMPANY_ID, main_acct_code="100", main_acct="Current Assets"))
    session.add(Vendor(company_id=COMPANY_ID, vendor_code="V001", vendor_name="Acme Supplies"))
    session.add(Customer(company_id=COMPANY_ID, customer_code="C001", customer_name="Beta Corp"))
    await session.commit()

    await add_account(session, "1010", "Cash in Bank", acct_number=10, fs="BS-CA", main_acct_code="100")
    await add_account(session, "1020", "Petty Cash", acct_number=15, fs="BS-CA", active=False)
    await add_account(session, "2010", "Accounts Payable", acct_number=20, fs="BS-CL")
    await add_account(session, "4031", "Retained Earnings", acct_number=30, fs="BS-EQ")
    await add_account(session, "5010", "Sales", acct_number=40, fs="IS-REV")
    await add_account(session, "6010", "Office Expense", acct_number=50, exclude=True)
    await add_account(session, "1010", "Cash in Bank", company_id=OTHER_COMPANY_ID, acct_number=10, fs="BS-CA")

    await add_beginning_balance(session, "1010", "1000.00")
    await add_beginning_balance(session, "2010", "-400.00")
    await add_beginning_balance(session, "4031", "-500.00")
    await add_beginning_balance(session, "5010", "-250.00")
    await add_beginning_balance(session, "6010", "150.00")

    # General journal: ids 1 (baseline year), 2, 3 (cancelled)
    await post_entry(session, "G", date(2024, 11, 10), [("1010", "50", "0"), ("5010", "0", "50")], "GJ-000")
    await post_entry(
        session, "G", date(2025, 1, 15), [("1010", "300", "0"), ("5010", "0", "300")], "GJ-001",
        comment="January sales",
    )
    await post_entry(
        session, "G", date(2025, 2, 12), [("1010", "9999", "0"), ("5010", "0", "9999")], "GJ-VOID",
        cancelled=True,
    )
    await post_entry(
        session, "D", date(2025, 2, 10), [("6010", "200", "0"), ("1010", "0", "200")], "CD-001",
        party_code="V001", comment="Stationery",
    )
    await post_entry(
        session, "R", date(2025, 2, 10), [("1010", "500", "0"), ("5010", "0", "500")], "CR-001",
        party_code="C001", comment="Invoice 17",
    )
    await post_entry(
        session, "P", date(2025, 3, 5), [("6010", "120", "0"), ("1010", "0", "120")], "CP-001",
        party_code="V001",
    )
    await post_entry(
        session, "S", date(2025, 3, 20), [("1010", "80", "0"), ("5010", "0", "80")], "CS-001",
        party_code="C001",
    )
    await post_entry(
        session, "G", date(2025, 2, 10), [("1010", "7777", "0"), ("5010", "0", "7777")], "GJ-X",
        company_id=OTHER_COMPANY_ID,
    )
    return session


# ===========================================
# SERVICE FIXTURES
# ===========================================

@pytest.fixture
def resolver() -> OpeningBalanceResolver:
    return OpeningBalanceResolver(baseline_date=BASELINE, retained_earnings_code="4031", pnl_threshold=4031)


@pytest.fixture
def ticket_store() -> InMemoryTicketStore:
    return InMemoryTicketStore(ttl_seconds=3600)


@pytest.fixture
def report_storage(tmp_path) -> ReportStorage:
    return ReportStorage(base_path=str(tmp_path), directory="reports", retention_days=2)


@pytest.fixture
def dispatcher() -> BackgroundReportDispatcher:
    return BackgroundReportDispatcher()


@pytest.fixture
def report_service(ticket_store, report_storage, session_factory, dispatcher, resolver) -> ReportJobService:
    return ReportJobService(
        store=ticket_store,
        storage=report_storage,
        session_factory=session_factory,
        dispatcher=dispatcher,
        renderer=LedgerDocumentRenderer(company_name="Test Company"),
        resolver=resolver,
    )


# ===========================================
# API FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def client(db_session: AsyncSession, report_service: ReportJobService) -> AsyncClient:
    """Create a test client with database session and report service overrides."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session
    app.state.report_job_service = report_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.report_job_service


def report_payload(**overrides) -> dict:
    """Request body for company 1, all accounts, February to March 2025."""
    payload = {
        "tenant_id": COMPANY_ID,
        "account_range": {"start": "1000", "end": "6999"},
        "date_range": {"start": "2025-02-01", "end": "2025-03-31"},
        "format": "pdf",
    }
    payload.update(overrides)
    return payload
