"""
Ledger Reports - General Ledger Schemas

Pydantic schemas for report requests, ticket status and account pickers.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ===========================================
# ENUMS
# ===========================================

class ReportFormat(str, Enum):
    PDF = "pdf"
    EXCEL = "xlsx"


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class ReportType(str, Enum):
    GENERAL_LEDGER = "general_ledger"
    TRIAL_BALANCE = "trial_balance"


class StatementFilter(str, Enum):
    """Which accounts of the range to include."""
    ALL = "ALL"
    ACTIVE = "ACT"
    BALANCE_SHEET = "BS"
    INCOME_STATEMENT = "IS"


class TicketStatus(str, Enum):
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TicketStatus.RUNNING


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class AccountRange(BaseModel):
    """Inclusive account code range."""
    start: str = Field(..., min_length=1, max_length=75)
    end: str = Field(..., min_length=1, max_length=75)

    @field_validator("start", "end")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class DateRange(BaseModel):
    """Inclusive posting date range."""
    start: date
    end: date

    @property
    def is_empty(self) -> bool:
        return self.start > self.end


class GeneralLedgerRequest(BaseModel):
    """Request to build a general ledger or trial balance report."""
    tenant_id: int = Field(..., description="Company id; must be positive")
    account_range: AccountRange
    date_range: DateRange
    format: ReportFormat = ReportFormat.PDF
    orientation: Orientation = Orientation.LANDSCAPE
    report_type: ReportType = ReportType.GENERAL_LEDGER
    statement_filter: StatementFilter = StatementFilter.ALL
    retained_earnings_carry_forward: Optional[Decimal] = Field(
        None,
        description="Prior fiscal year-end net income for the retained earnings account",
    )
    derive_retained_earnings: bool = Field(
        False,
        description="Compute the carry-forward from the books when none is supplied",
    )

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> Any:
        """Accept "xls" for spreadsheets; the file is always written as xlsx."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "xls":
                return ReportFormat.EXCEL.value
        return v

    @field_validator("statement_filter", mode="before")
    @classmethod
    def normalize_filter(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class TicketResponse(BaseModel):
    """Ticket issued for a report request."""
    ticket: str


class TicketStatusResponse(BaseModel):
    """Poll result for a ticket."""
    ticket: str
    status: TicketStatus
    progress: int = Field(..., ge=0, le=100)
    message: str
    download_name: Optional[str] = None
    updated_at: Optional[datetime] = None


class AccountOption(BaseModel):
    """Account entry for the range pickers."""
    model_config = ConfigDict(from_attributes=True)

    acct_code: str
    acct_desc: str
    label: str
