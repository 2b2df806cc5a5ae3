"""
Ledger Reports - Report Assembler Tests

End-to-end ledger assembly against a seeded in-memory database.

Seeded books for company 1 (see conftest.ledger_books), baseline 2024-12-31:

    1010 Cash (BS)          BB  1000.00
    2010 Payables (BS)      BB  -400.00
    4031 Retained earnings  BB  -500.00
    5010 Sales (IS)         BB  -250.00
    6010 Expense (P&L)      BB   150.00
"""

from datetime import date
from decimal import Decimal

import pytest

from app.schemas.general_ledger import (
    AccountRange,
    DateRange,
    GeneralLedgerRequest,
    StatementFilter,
)
from app.services.ledger_builder import LedgerRowKind
from app.services.report_assembler import GeneralLedgerAssembler, normalize_account_range
from app.utils.error_handling import NoAccountsInRangeException
from tests.conftest import COMPANY_ID, add_account, add_beginning_balance, post_entry


def make_request(start="2025-02-01", end="2025-03-31", accounts=("1000", "6999"), **kwargs):
    return GeneralLedgerRequest(
        tenant_id=kwargs.pop("tenant_id", COMPANY_ID),
        account_range=AccountRange(start=accounts[0], end=accounts[1]),
        date_range=DateRange(start=date.fromisoformat(start), end=date.fromisoformat(end)),
        **kwargs,
    )


def ledger_for(report, acct_code):
    return next(ledger for ledger in report.accounts if ledger.account.acct_code == acct_code)


class TestNormalizeAccountRange:

    def test_inverted_range_is_swapped(self):
        normalized = normalize_account_range(AccountRange(start="6999", end="1000"))
        assert (normalized.start, normalized.end) == ("1000", "6999")

    def test_ordered_range_is_unchanged(self):
        account_range = AccountRange(start="1000", end="1999")
        assert normalize_account_range(account_range) is account_range


@pytest.mark.asyncio
class TestReferenceData:
    """Test account and beginning balance loading."""

    async def test_list_accounts_active_and_naturally_ordered(self, db_session):
        await add_account(db_session, "10000", "Ten thousand")
        await add_account(db_session, "900", "Nine hundred")
        await add_account(db_session, "1010", "Cash")
        await add_account(db_session, "1020", "Closed", active=False)

        accounts = await GeneralLedgerAssembler(db_session).list_accounts(COMPANY_ID)
        assert [account.acct_code for account in accounts] == ["900", "1010", "10000"]

    async def test_list_accounts_invalid_tenant(self, ledger_books):
        assert await GeneralLedgerAssembler(ledger_books).list_accounts(0) == []

    async def test_load_accounts_in_account_number_order(self, ledger_books, resolver):
        accounts = await GeneralLedgerAssembler(ledger_books, resolver).load_accounts(
            COMPANY_ID, AccountRange(start="1000", end="6999"),
        )

        assert [account.acct_code for account in accounts] == ["1010", "2010", "4031", "5010", "6010"]
        cash = accounts[0]
        assert cash.main_acct == "Current Assets"
        assert cash.is_pnl is False
        assert accounts[2].is_retained_earnings is True
        assert accounts[3].is_pnl is True
        assert accounts[4].is_pnl is True

    @pytest.mark.parametrize("statement_filter,expected", [
        (StatementFilter.ACTIVE, ["1010", "2010", "4031", "5010"]),
        (StatementFilter.BALANCE_SHEET, ["1010", "2010", "4031"]),
        (StatementFilter.INCOME_STATEMENT, ["5010"]),
    ])
    async def test_statement_filters(self, ledger_books, resolver, statement_filter, expected):
        accounts = await GeneralLedgerAssembler(ledger_books, resolver).load_accounts(
            COMPANY_ID, AccountRange(start="1000", end="6999"), statement_filter,
        )
        assert [account.acct_code for account in accounts] == expected

    async def test_load_beginning_balances(self, ledger_books, resolver):
        balances = await GeneralLedgerAssembler(ledger_books, resolver).load_beginning_balances(
            COMPANY_ID, AccountRange(start="1000", end="2999"),
        )
        assert balances == {"1010": Decimal("1000.00"), "2010": Decimal("-400.00")}


@pytest.mark.asyncio
class TestDeriveRetainedEarnings:

    async def test_first_year_after_baseline_uses_baseline_balances(self, ledger_books, resolver):
        total = await GeneralLedgerAssembler(ledger_books, resolver).derive_retained_earnings(COMPANY_ID, 2025)
        # 4031 + 5010 + 6010 baseline balances
        assert total == Decimal("-600.00")

    async def test_adds_full_year_net_income(self, ledger_books, resolver):
        total = await GeneralLedgerAssembler(ledger_books, resolver).derive_retained_earnings(COMPANY_ID, 2026)
        # 2025 net income: sales -880, expenses +320
        assert total == Decimal("-1160.00")


@pytest.mark.asyncio
class TestAssemble:
    """Test full report assembly."""

    async def test_single_posting_after_opening(self, db_session, resolver):
        await add_account(db_session, "1000", "Operating Account", acct_number=1, fs="BS-CA")
        await add_account(db_session, "3000", "Capital", acct_number=2, fs="BS-EQ")
        await add_beginning_balance(db_session, "1000", "1000.00")
        await post_entry(db_session, "G", date(2025, 2, 10), [("1000", "200.00", "0"), ("3000", "0", "200.00")])

        report = await GeneralLedgerAssembler(db_session, resolver).assemble(
            make_request(start="2025-02-01", end="2025-02-28", accounts=("1000", "1000")),
        )

        ledger = ledger_for(report, "1000")
        assert [(row.kind, row.ending) for row in ledger.rows] == [
            (LedgerRowKind.OPENING, Decimal("1000.00")),
            (LedgerRowKind.DETAIL, Decimal("1200.00")),
        ]
        assert ledger.totals.debit == Decimal("200.00")
        assert ledger.totals.credit == Decimal("0")
        assert ledger.totals.ending == Decimal("1200.00")

    async def test_february_to_march(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(make_request())

        assert [ledger.account.acct_code for ledger in report.accounts] == [
            "1010", "2010", "4031", "5010", "6010",
        ]

        cash = ledger_for(report, "1010")
        # Baseline plus the January journal entry
        assert cash.opening_balance == Decimal("1300.00")
        assert [row.ending for row in cash.rows] == [
            Decimal("1300.00"),
            Decimal("1100.00"),
            Decimal("1600.00"),
            Decimal("1600.00"),
            Decimal("1480.00"),
            Decimal("1560.00"),
        ]
        assert cash.rows[3].kind is LedgerRowKind.MONTH_OPEN
        assert len(cash.month_markers) == 2
        assert (cash.totals.debit, cash.totals.credit) == (Decimal("580.00"), Decimal("320.00"))

        payables = ledger_for(report, "2010")
        assert payables.opening_balance == Decimal("-400.00")
        assert payables.totals.ending == Decimal("-400.00")

        retained = ledger_for(report, "4031")
        assert retained.opening_balance == Decimal("-500.00")
        assert len(retained.rows) == 1

        sales = ledger_for(report, "5010")
        # Year-to-date January movement, not the baseline balance
        assert sales.opening_balance == Decimal("-300.00")
        assert sales.totals.ending == Decimal("-880.00")

        expense = ledger_for(report, "6010")
        assert expense.opening_balance == Decimal("0")
        assert expense.totals.ending == Decimal("320.00")

    async def test_report_is_balanced(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(make_request())
        assert report.total_debit == Decimal("900.00")
        assert report.total_credit == Decimal("900.00")
        assert report.is_balanced() is True

    async def test_detail_lines_carry_source_fields(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(make_request())

        first = ledger_for(report, "1010").detail_rows[0]
        assert first.category == "D"
        assert first.reference_no == "CD-001"
        assert first.party == "Acme Supplies"
        assert first.comment == "Stationery"
        assert first.post_date == date(2025, 2, 10)

    async def test_pnl_resets_on_january_first(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(
            make_request(start="2025-01-01", end="2025-01-31"),
        )

        sales = ledger_for(report, "5010")
        assert sales.opening_balance == Decimal("0")
        assert sales.totals.ending == Decimal("-300.00")

        cash = ledger_for(report, "1010")
        assert cash.opening_balance == Decimal("1000.00")
        assert cash.totals.ending == Decimal("1300.00")

    async def test_baseline_year_start(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(
            make_request(start="2024-06-01", end="2024-12-31"),
        )

        # Baseline snapshot minus the 2024 movement already inside it
        assert ledger_for(report, "5010").opening_balance == Decimal("-200.00")
        assert ledger_for(report, "1010").opening_balance == Decimal("1000.00")
        assert ledger_for(report, "1010").totals.ending == Decimal("1050.00")

    async def test_retained_earnings_carry_forward(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(
            make_request(retained_earnings_carry_forward=Decimal("-1234.56")),
        )
        retained = ledger_for(report, "4031")
        assert retained.opening_balance == Decimal("-1234.56")
        assert retained.totals.ending == Decimal("-1234.56")

    async def test_retained_earnings_derived_from_books(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(
            make_request(derive_retained_earnings=True),
        )
        assert ledger_for(report, "4031").opening_balance == Decimal("-600.00")

    async def test_retained_earnings_postings_are_not_listed(self, ledger_books, resolver):
        await post_entry(
            ledger_books, "G", date(2025, 2, 20), [("4031", "10", "0"), ("1010", "0", "10")], "GJ-RE",
        )
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(make_request())

        retained = ledger_for(report, "4031")
        assert len(retained.rows) == 1
        assert retained.totals.debit == Decimal("0")
        assert retained.totals.ending == Decimal("-500.00")
        assert ledger_for(report, "1010").totals.ending == Decimal("1550.00")

    async def test_inverted_account_range(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(
            make_request(accounts=("6999", "1000")),
        )
        assert report.account_range.start == "1000"
        assert len(report.accounts) == 5

    async def test_other_company_is_isolated(self, ledger_books, resolver):
        report = await GeneralLedgerAssembler(ledger_books, resolver).assemble(make_request(tenant_id=2))

        cash = ledger_for(report, "1010")
        assert cash.opening_balance == Decimal("0")
        assert cash.totals.debit == Decimal("7777.00")

    async def test_no_accounts_in_range(self, ledger_books, resolver):
        with pytest.raises(NoAccountsInRangeException) as exc_info:
            await GeneralLedgerAssembler(ledger_books, resolver).assemble(
                make_request(accounts=("8000", "8999")),
            )
        assert exc_info.value.message == "No accounts in range"

    async def test_progress_is_monotonic(self, ledger_books, resolver):
        updates = []

        async def progress(value, message):
            updates.append((value, message))

        await GeneralLedgerAssembler(ledger_books, resolver).assemble(make_request(), progress=progress)

        values = [value for value, _ in updates]
        assert values == sorted(values)
        assert len(values) == len(set(values))
        assert values[0] == 1
        assert values[-1] == 85
        assert updates[-1][1] == "Assembling 6010..."
        assert all(0 <= value < 100 for value in values)
