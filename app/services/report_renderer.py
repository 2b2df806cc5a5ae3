"""
Ledger Reports - Document Renderer

Renders a finished GeneralLedgerReport to PDF (reportlab) or Excel
(openpyxl). Two layouts:
- General ledger: one section per account with its rows, month subtotals
  and account total
- Trial balance: one line per account with beginning, debit, credit, ending
"""

import io
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from app.config import settings
from app.schemas.general_ledger import Orientation, ReportFormat, ReportType
from app.services.ledger_builder import (
    AccountLedger,
    GeneralLedgerReport,
    LedgerRow,
    LedgerRowKind,
)
from app.utils.error_handling import RenderException
from app.utils.money import format_money, round_money

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ReportFormat.PDF: "application/pdf",
    ReportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

HEADER_BACKGROUND = "#e2e8f0"
SUBTOTAL_BACKGROUND = "#f7fafc"
CURRENCY_FORMAT = '#,##0.00'

GL_COLUMNS = ["Date", "Src", "Batch", "Reference", "Party", "Comment", "Debit", "Credit", "Balance"]
TB_COLUMNS = ["Account", "Description", "Beginning", "Debit", "Credit", "Ending"]


@dataclass(frozen=True)
class RenderedDocument:
    content: bytes
    filename: str
    content_type: str
    format: ReportFormat


def _safe_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip()) or "all"


def build_download_name(
    report: GeneralLedgerReport,
    report_type: ReportType,
    report_format: ReportFormat,
) -> str:
    """Friendly file name, e.g. ``GeneralLedger_1000-1999_2025-02-01_to_2025-02-28.pdf``."""
    prefix = "TrialBalance" if report_type is ReportType.TRIAL_BALANCE else "GeneralLedger"
    accounts = f"{_safe_name(report.account_range.start)}-{_safe_name(report.account_range.end)}"
    start = report.date_range.start.isoformat()
    end = report.date_range.end.isoformat()
    return f"{prefix}_{accounts}_{start}_to_{end}.{report_format.value}"


class DocumentRenderer(ABC):
    """Turns a report model into file bytes."""

    @abstractmethod
    def render(
        self,
        report: GeneralLedgerReport,
        report_format: ReportFormat,
        orientation: Orientation = Orientation.LANDSCAPE,
        report_type: ReportType = ReportType.GENERAL_LEDGER,
    ) -> RenderedDocument:
        ...


class LedgerDocumentRenderer(DocumentRenderer):
    """PDF and Excel layouts for ledger reports."""

    def __init__(self, company_name: Optional[str] = None):
        self.company_name = company_name if company_name is not None else settings.report_company_name
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontSize=16,
            alignment=TA_CENTER,
            spaceAfter=6,
            textColor=colors.HexColor("#1a365d")
        ))
        self.styles.add(ParagraphStyle(
            name='ReportSubtitle',
            parent=self.styles['Heading2'],
            fontSize=11,
            alignment=TA_CENTER,
            spaceAfter=6,
            textColor=colors.HexColor("#4a5568")
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading3'],
            fontSize=10,
            fontName='Helvetica-Bold',
            spaceBefore=12,
            spaceAfter=4,
            textColor=colors.HexColor("#2d3748")
        ))
        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=8,
            alignment=TA_CENTER,
            textColor=colors.HexColor("#718096")
        ))

    def render(
        self,
        report: GeneralLedgerReport,
        report_format: ReportFormat,
        orientation: Orientation = Orientation.LANDSCAPE,
        report_type: ReportType = ReportType.GENERAL_LEDGER,
    ) -> RenderedDocument:
        try:
            if report_format is ReportFormat.PDF:
                if report_type is ReportType.TRIAL_BALANCE:
                    content = self._trial_balance_pdf(report, orientation)
                else:
                    content = self._general_ledger_pdf(report, orientation)
            elif report_format is ReportFormat.EXCEL:
                if report_type is ReportType.TRIAL_BALANCE:
                    content = self._trial_balance_excel(report)
                else:
                    content = self._general_ledger_excel(report)
            else:
                raise ValueError(f"Unsupported format: {report_format}")
        except RenderException:
            raise
        except Exception as exc:
            logger.error(f"Rendering {report_format.value} failed: {exc}")
            raise RenderException(str(report_format.value), exc) from exc

        return RenderedDocument(
            content=content,
            filename=build_download_name(report, report_type, report_format),
            content_type=CONTENT_TYPES[report_format],
            format=report_format,
        )

    # =========================================================================
    # PDF
    # =========================================================================

    def _document(self, buffer: io.BytesIO, orientation: Orientation) -> SimpleDocTemplate:
        pagesize = landscape(A4) if orientation is Orientation.LANDSCAPE else portrait(A4)
        return SimpleDocTemplate(
            buffer,
            pagesize=pagesize,
            rightMargin=0.4*inch,
            leftMargin=0.4*inch,
            topMargin=0.5*inch,
            bottomMargin=0.5*inch
        )

    def _heading(self, title: str, report: GeneralLedgerReport) -> list:
        elements = []
        if self.company_name:
            elements.append(Paragraph(escape(self.company_name), self.styles['ReportTitle']))
        elements.append(Paragraph(title, self.styles['ReportTitle']))
        elements.append(Paragraph(
            f"Accounts {escape(report.account_range.start)} to {escape(report.account_range.end)}",
            self.styles['ReportSubtitle']
        ))
        elements.append(Paragraph(
            f"Period: {report.date_range.start.strftime('%B %d, %Y')} to "
            f"{report.date_range.end.strftime('%B %d, %Y')}",
            self.styles['ReportSubtitle']
        ))
        elements.append(Spacer(1, 12))
        return elements

    def _footer(self) -> list:
        return [
            Spacer(1, 12),
            HRFlowable(width="100%", color=colors.gray),
            Paragraph(
                f"Generated by {escape(settings.app_name)} on {datetime.now().strftime('%Y-%m-%d %H:%M')}",
                self.styles['Footer']
            ),
        ]

    @staticmethod
    def _amount(value: Decimal, blank_zero: bool = True) -> str:
        if blank_zero and round_money(value) == 0:
            return ""
        return format_money(value)

    def _row_cells(self, row: LedgerRow) -> List[str]:
        if row.kind is LedgerRowKind.DETAIL:
            return [
                row.post_date.strftime('%m/%d/%Y'),
                row.category or "",
                str(row.batch_no or ""),
                (row.reference_no or "")[:20],
                (row.party or "")[:28],
                (row.comment or "")[:40],
                self._amount(row.debit),
                self._amount(row.credit),
                self._amount(row.ending, blank_zero=False),
            ]
        return [
            row.post_date.strftime('%m/%d/%Y'),
            "",
            "",
            "",
            "",
            (row.comment or "")[:60],
            "",
            "",
            self._amount(row.ending, blank_zero=False),
        ]

    def _account_table_data(self, ledger: AccountLedger):
        data = [list(GL_COLUMNS)]
        subtotal_rows = []
        subtotals = {(item.year, item.month): item for item in ledger.month_subtotals}
        current_month = None

        def close_month():
            subtotal = subtotals.get(current_month)
            if subtotal is None:
                return
            subtotal_rows.append(len(data))
            data.append([
                "", "", "", "", "", f"Total for {subtotal.label}",
                self._amount(subtotal.debit, blank_zero=False),
                self._amount(subtotal.credit, blank_zero=False),
                "",
            ])

        for row in ledger.rows:
            month = (row.post_date.year, row.post_date.month)
            if row.is_month_marker and current_month is not None and month != current_month:
                close_month()
            if row.is_month_marker:
                current_month = month
            data.append(self._row_cells(row))
        close_month()

        data.append([
            "", "", "", "", "", f"Total {ledger.account.acct_code}",
            self._amount(ledger.totals.debit, blank_zero=False),
            self._amount(ledger.totals.credit, blank_zero=False),
            self._amount(ledger.totals.ending, blank_zero=False),
        ])
        return data, subtotal_rows

    def _general_ledger_pdf(self, report: GeneralLedgerReport, orientation: Orientation) -> bytes:
        buffer = io.BytesIO()
        doc = self._document(buffer, orientation)
        elements = self._heading("General Ledger", report)

        width = doc.width
        col_widths = [
            width * 0.08, width * 0.04, width * 0.06, width * 0.10, width * 0.14,
            width * 0.22, width * 0.12, width * 0.12, width * 0.12,
        ]

        for ledger in report.accounts:
            title = f"{ledger.account.acct_code} - {ledger.account.acct_desc}"
            if ledger.account.main_acct:
                title = f"{title} ({ledger.account.main_acct})"
            elements.append(Paragraph(escape(title), self.styles['SectionHeader']))

            data, subtotal_rows = self._account_table_data(ledger)
            table = Table(data, colWidths=col_widths, repeatRows=1)
            style = [
                ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(HEADER_BACKGROUND)),
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 7),
                ('ALIGN', (6, 0), (8, -1), 'RIGHT'),
                ('LINEBELOW', (0, 0), (-1, 0), 0.5, colors.gray),
                ('LINEABOVE', (0, -1), (-1, -1), 0.5, colors.gray),
                ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
                ('TOPPADDING', (0, 0), (-1, -1), 2),
                ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
            ]
            for index in subtotal_rows:
                style.append(('BACKGROUND', (0, index), (-1, index), colors.HexColor(SUBTOTAL_BACKGROUND)))
                style.append(('FONTNAME', (0, index), (-1, index), 'Helvetica-Oblique'))
            table.setStyle(TableStyle(style))
            elements.append(table)

        elements.append(Spacer(1, 12))
        totals = Table(
            [["", "Grand Total", format_money(report.total_debit), format_money(report.total_credit)]],
            colWidths=[width * 0.52, width * 0.12, width * 0.12, width * 0.12],
        )
        totals.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ALIGN', (2, 0), (3, 0), 'RIGHT'),
            ('LINEABOVE', (1, 0), (-1, 0), 1, colors.black),
        ]))
        elements.append(totals)
        elements.extend(self._footer())

        doc.build(elements)
        return buffer.getvalue()

    def _trial_balance_pdf(self, report: GeneralLedgerReport, orientation: Orientation) -> bytes:
        buffer = io.BytesIO()
        doc = self._document(buffer, orientation)
        elements = self._heading("Trial Balance", report)

        data = [list(TB_COLUMNS)]
        for line in report.trial_balance():
            data.append([
                line.acct_code,
                line.acct_desc[:50],
                format_money(line.beginning),
                format_money(line.debit),
                format_money(line.credit),
                format_money(line.ending),
            ])
        data.append([
            "", "Total", "",
            format_money(report.total_debit),
            format_money(report.total_credit),
            "",
        ])

        width = doc.width
        table = Table(
            data,
            colWidths=[width * 0.12, width * 0.32, width * 0.14, width * 0.14, width * 0.14, width * 0.14],
            repeatRows=1,
        )
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(HEADER_BACKGROUND)),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -2), 0.25, colors.lightgrey),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]))
        elements.append(table)
        elements.extend(self._footer())

        doc.build(elements)
        return buffer.getvalue()

    # =========================================================================
    # EXCEL
    # =========================================================================

    def _excel_heading(self, ws, title: str, report: GeneralLedgerReport) -> int:
        row = 1
        if self.company_name:
            ws.cell(row=row, column=1, value=self.company_name).font = Font(bold=True, size=14)
            row += 1
        ws.cell(row=row, column=1, value=title).font = Font(bold=True, size=12)
        row += 1
        ws.cell(row=row, column=1, value=f"Accounts {report.account_range.start} to {report.account_range.end}")
        row += 1
        ws.cell(
            row=row,
            column=1,
            value=f"Period: {report.date_range.start.isoformat()} to {report.date_range.end.isoformat()}",
        )
        return row + 2

    @staticmethod
    def _write_header(ws, row: int, headers: List[str]) -> None:
        header_fill = PatternFill(start_color="E2E8F0", end_color="E2E8F0", fill_type="solid")
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = header_fill
            cell.font = Font(bold=True)
            cell.alignment = Alignment(horizontal="center")

    @staticmethod
    def _money_cell(ws, row: int, column: int, value: Decimal, bold: bool = False):
        cell = ws.cell(row=row, column=column, value=float(round_money(value)))
        cell.number_format = CURRENCY_FORMAT
        if bold:
            cell.font = Font(bold=True)
        return cell

    def _general_ledger_excel(self, report: GeneralLedgerReport) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = "General Ledger"

        row = self._excel_heading(ws, "General Ledger", report)
        self._write_header(ws, row, GL_COLUMNS)
        row += 1

        for ledger in report.accounts:
            title = f"{ledger.account.acct_code} - {ledger.account.acct_desc}"
            ws.cell(row=row, column=1, value=title).font = Font(bold=True)
            row += 1

            for ledger_row in ledger.rows:
                ws.cell(row=row, column=1, value=ledger_row.post_date).number_format = 'mm/dd/yyyy'
                if ledger_row.kind is LedgerRowKind.DETAIL:
                    ws.cell(row=row, column=2, value=ledger_row.category)
                    ws.cell(row=row, column=3, value=ledger_row.batch_no)
                    ws.cell(row=row, column=4, value=ledger_row.reference_no)
                    ws.cell(row=row, column=5, value=ledger_row.party)
                    ws.cell(row=row, column=6, value=ledger_row.comment)
                    self._money_cell(ws, row, 7, ledger_row.debit)
                    self._money_cell(ws, row, 8, ledger_row.credit)
                else:
                    ws.cell(row=row, column=6, value=ledger_row.comment).font = Font(italic=True)
                self._money_cell(ws, row, 9, ledger_row.ending)
                row += 1

            for subtotal in ledger.month_subtotals:
                ws.cell(row=row, column=6, value=f"Total for {subtotal.label}").font = Font(italic=True)
                self._money_cell(ws, row, 7, subtotal.debit)
                self._money_cell(ws, row, 8, subtotal.credit)
                row += 1

            ws.cell(row=row, column=6, value=f"Total {ledger.account.acct_code}").font = Font(bold=True)
            self._money_cell(ws, row, 7, ledger.totals.debit, bold=True)
            self._money_cell(ws, row, 8, ledger.totals.credit, bold=True)
            self._money_cell(ws, row, 9, ledger.totals.ending, bold=True)
            row += 2

        ws.cell(row=row, column=6, value="Grand Total").font = Font(bold=True)
        self._money_cell(ws, row, 7, report.total_debit, bold=True)
        self._money_cell(ws, row, 8, report.total_credit, bold=True)

        for column, width in zip("ABCDEFGHI", [12, 6, 10, 16, 28, 40, 15, 15, 15]):
            ws.column_dimensions[column].width = width

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def _trial_balance_excel(self, report: GeneralLedgerReport) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = "Trial Balance"

        row = self._excel_heading(ws, "Trial Balance", report)
        self._write_header(ws, row, TB_COLUMNS)
        row += 1

        for line in report.trial_balance():
            ws.cell(row=row, column=1, value=line.acct_code)
            ws.cell(row=row, column=2, value=line.acct_desc)
            self._money_cell(ws, row, 3, line.beginning)
            self._money_cell(ws, row, 4, line.debit)
            self._money_cell(ws, row, 5, line.credit)
            self._money_cell(ws, row, 6, line.ending)
            row += 1

        ws.cell(row=row, column=2, value="Total").font = Font(bold=True)
        self._money_cell(ws, row, 4, report.total_debit, bold=True)
        self._money_cell(ws, row, 5, report.total_credit, bold=True)

        for column, width in zip("ABCDEF", [14, 40, 16, 16, 16, 16]):
            ws.column_dimensions[column].width = width

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()
