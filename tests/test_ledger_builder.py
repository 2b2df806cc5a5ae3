"""
Ledger Reports - Ledger Builder Tests

Tests for running balances, month markers and the report model.
"""

from datetime import date
from decimal import Decimal

import pytest

from app.schemas.general_ledger import AccountRange, DateRange
from app.services.ledger_builder import (
    GeneralLedgerReport,
    LedgerRowKind,
    build_account_ledger,
)
from app.services.transaction_sources import TransactionDetailLine, merge_transaction_lines


def make_line(post_date, debit="0", credit="0", acct_code="1010", category="G", batch_no=1, reference="REF"):
    return TransactionDetailLine(
        category=category,
        batch_no=batch_no,
        post_date=post_date,
        reference_no=reference,
        party=None,
        comment=None,
        acct_code=acct_code,
        debit=Decimal(debit),
        credit=Decimal(credit),
    )


@pytest.fixture
def cash(resolver):
    return resolver.classify("1010", "Cash in Bank", fs="BS-CA")


@pytest.fixture
def retained(resolver):
    return resolver.classify("4031", "Retained Earnings", fs="BS-EQ")


class TestBuildAccountLedger:
    """Test the rows of a single account."""

    def test_single_posting_after_opening(self, cash):
        ledger = build_account_ledger(
            cash,
            Decimal("1000.00"),
            [make_line(date(2025, 2, 10), debit="200.00")],
            date(2025, 2, 1),
        )

        opening, detail = ledger.rows
        assert opening.kind is LedgerRowKind.OPENING
        assert opening.ending == Decimal("1000.00")
        assert opening.comment == "Beginning Balances (Cash in Bank)"
        assert detail.kind is LedgerRowKind.DETAIL
        assert detail.ending == Decimal("1200.00")

        assert ledger.totals.debit == Decimal("200.00")
        assert ledger.totals.credit == Decimal("0")
        assert ledger.totals.ending == Decimal("1200.00")
        assert len(ledger.month_markers) == 1

    def test_no_postings_keeps_opening(self, cash):
        ledger = build_account_ledger(cash, Decimal("55.10"), [], date(2025, 2, 1))
        assert len(ledger.rows) == 1
        assert ledger.totals.ending == Decimal("55.10")
        assert ledger.month_subtotals == []

    def test_running_balance_recurrence(self, cash):
        lines = [
            make_line(date(2025, 2, 3), debit="100.00", batch_no=1),
            make_line(date(2025, 2, 9), credit="40.25", batch_no=2),
            make_line(date(2025, 2, 9), debit="10.00", credit="5.00", batch_no=3),
        ]
        ledger = build_account_ledger(cash, Decimal("10.00"), lines, date(2025, 2, 1))

        previous = ledger.opening_balance
        for row in ledger.detail_rows:
            assert row.ending == previous + row.debit - row.credit
            previous = row.ending
        assert ledger.totals.ending == ledger.opening_balance + ledger.totals.debit - ledger.totals.credit

    def test_month_markers_per_posting_month(self, cash):
        lines = [
            make_line(date(2025, 2, 10), debit="100", batch_no=1),
            make_line(date(2025, 3, 5), credit="30", batch_no=2),
            make_line(date(2025, 3, 25), debit="5", batch_no=3),
            make_line(date(2025, 5, 2), debit="1", batch_no=4),
        ]
        ledger = build_account_ledger(cash, Decimal("0"), lines, date(2025, 2, 1))

        kinds = [row.kind for row in ledger.rows]
        assert kinds == [
            LedgerRowKind.OPENING,
            LedgerRowKind.DETAIL,
            LedgerRowKind.MONTH_OPEN,
            LedgerRowKind.DETAIL,
            LedgerRowKind.DETAIL,
            LedgerRowKind.MONTH_OPEN,
            LedgerRowKind.DETAIL,
        ]
        # February, March and May; April has no postings
        assert len(ledger.month_markers) == 3

    def test_month_open_carries_previous_running_balance(self, cash):
        lines = [
            make_line(date(2025, 2, 10), debit="100", batch_no=1),
            make_line(date(2025, 3, 5), credit="30", batch_no=2),
        ]
        ledger = build_account_ledger(cash, Decimal("50"), lines, date(2025, 2, 1))

        march_open = ledger.rows[2]
        assert march_open.kind is LedgerRowKind.MONTH_OPEN
        assert march_open.post_date == date(2025, 3, 1)
        assert march_open.comment == "Beginning Balance"
        assert march_open.beginning == Decimal("150")
        assert march_open.debit == Decimal("0")
        assert march_open.credit == Decimal("0")

    def test_first_line_in_later_month_gets_marker(self, cash):
        ledger = build_account_ledger(
            cash, Decimal("0"), [make_line(date(2025, 3, 5), debit="1")], date(2025, 2, 1),
        )
        assert [row.kind for row in ledger.rows] == [
            LedgerRowKind.OPENING,
            LedgerRowKind.MONTH_OPEN,
            LedgerRowKind.DETAIL,
        ]

    def test_month_subtotals(self, cash):
        lines = [
            make_line(date(2025, 2, 10), debit="100", batch_no=1),
            make_line(date(2025, 2, 11), credit="20", batch_no=2),
            make_line(date(2025, 3, 5), credit="30", batch_no=3),
        ]
        ledger = build_account_ledger(cash, Decimal("0"), lines, date(2025, 2, 1))

        february, march = ledger.month_subtotals
        assert (february.debit, february.credit) == (Decimal("100"), Decimal("20"))
        assert (march.debit, march.credit) == (Decimal("0"), Decimal("30"))
        assert february.label == "February 2025"

    def test_accumulates_without_intermediate_rounding(self, cash):
        lines = [make_line(date(2025, 2, 1), debit="0.001", batch_no=n) for n in range(1, 11)]
        ledger = build_account_ledger(cash, Decimal("0"), lines, date(2025, 2, 1))
        assert ledger.totals.ending == Decimal("0.010")
        assert ledger.to_dict()["totals"]["ending"] == "0.01"

    def test_retained_earnings_stays_constant(self, retained):
        lines = [
            make_line(date(2025, 2, 10), debit="10", acct_code="4031"),
            make_line(date(2025, 3, 10), credit="99", acct_code="4031", batch_no=2),
        ]
        ledger = build_account_ledger(retained, Decimal("-500.00"), lines, date(2025, 2, 1))

        assert len(ledger.rows) == 1
        assert ledger.rows[0].kind is LedgerRowKind.OPENING
        assert ledger.totals.debit == Decimal("0")
        assert ledger.totals.credit == Decimal("0")
        assert ledger.totals.ending == Decimal("-500.00")


class TestMergeTransactionLines:
    """Test the combined ordering of lines from several books."""

    def test_orders_by_date_then_batch(self):
        merged = merge_transaction_lines([
            [make_line(date(2025, 2, 10), category="G", batch_no=9)],
            [make_line(date(2025, 2, 1), category="D", batch_no=4)],
            [make_line(date(2025, 2, 10), category="R", batch_no=2)],
        ])
        assert [(line.category, line.batch_no) for line in merged] == [("D", 4), ("R", 2), ("G", 9)]

    def test_ties_keep_book_order(self):
        merged = merge_transaction_lines([
            [make_line(date(2025, 2, 10), category="G", batch_no=1)],
            [make_line(date(2025, 2, 10), category="D", batch_no=1)],
            [make_line(date(2025, 2, 10), category="R", batch_no=1)],
            [make_line(date(2025, 2, 10), category="P", batch_no=1)],
            [make_line(date(2025, 2, 10), category="S", batch_no=1)],
        ])
        assert [line.category for line in merged] == ["G", "D", "R", "P", "S"]


class TestGeneralLedgerReport:
    """Test report-level totals and the trial balance view."""

    def _report(self, cash, sales_ledger_lines):
        report = GeneralLedgerReport(
            tenant_id=1,
            account_range=AccountRange(start="1000", end="6999"),
            date_range=DateRange(start=date(2025, 2, 1), end=date(2025, 2, 28)),
        )
        report.accounts.append(build_account_ledger(
            cash, Decimal("100"), [make_line(date(2025, 2, 5), debit="75.50")], date(2025, 2, 1),
        ))
        report.accounts.append(build_account_ledger(
            sales_ledger_lines[0], Decimal("0"), sales_ledger_lines[1], date(2025, 2, 1),
        ))
        return report

    def test_balanced_report(self, resolver, cash):
        sales = resolver.classify("5010", "Sales", fs="IS-REV")
        report = self._report(cash, (sales, [
            make_line(date(2025, 2, 5), credit="75.50", acct_code="5010"),
        ]))
        assert report.total_debit == Decimal("75.50")
        assert report.total_credit == Decimal("75.50")
        assert report.is_balanced() is True

    def test_unbalanced_report(self, resolver, cash):
        sales = resolver.classify("5010", "Sales", fs="IS-REV")
        report = self._report(cash, (sales, [
            make_line(date(2025, 2, 5), credit="75.49", acct_code="5010"),
        ]))
        assert report.is_balanced() is False

    def test_trial_balance_lines(self, resolver, cash):
        sales = resolver.classify("5010", "Sales", fs="IS-REV")
        report = self._report(cash, (sales, [
            make_line(date(2025, 2, 5), credit="75.50", acct_code="5010"),
        ]))

        cash_line, sales_line = report.trial_balance()
        assert cash_line.acct_code == "1010"
        assert cash_line.beginning == Decimal("100")
        assert cash_line.ending == Decimal("175.50")
        assert sales_line.credit == Decimal("75.50")
        assert sales_line.ending == Decimal("-75.50")

    def test_to_dict_rounds_amounts(self, resolver, cash):
        sales = resolver.classify("5010", "Sales", fs="IS-REV")
        report = self._report(cash, (sales, []))

        data = report.to_dict()
        assert data["date_range"] == {"start": "2025-02-01", "end": "2025-02-28"}
        assert data["accounts"][0]["rows"][1]["ending"] == "175.50"
        assert data["total_debit"] == "75.50"
