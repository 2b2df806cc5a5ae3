"""
Ledger Reports - Reference Data Models

Chart of accounts, baseline beginning balances and the vendor / customer
directories used to label journal lines. This data is maintained elsewhere;
the ledger engine only reads it.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


class AccountMain(BaseModel, TenantMixin):
    """Main account grouping (e.g. "Current Assets")."""

    __tablename__ = "account_main"
    __table_args__ = (
        UniqueConstraint("company_id", "main_acct_code", name="uq_account_main_company_code"),
    )

    main_acct_code: Mapped[str] = mapped_column(String(75), nullable=False)
    main_acct: Mapped[str] = mapped_column(String(255), nullable=False)


class AccountCode(BaseModel, TenantMixin):
    """
    One ledger account in a company's chart of accounts.

    ``fs`` is the financial statement tag ("BS..." for balance sheet,
    "IS..." for income statement). ``exclude`` hides the account from the
    "active accounts" statement filter.
    """

    __tablename__ = "account_code"
    __table_args__ = (
        UniqueConstraint("company_id", "acct_code", name="uq_account_code_company_code"),
    )

    acct_code: Mapped[str] = mapped_column(String(75), nullable=False, index=True)
    acct_desc: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    acct_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    main_acct_code: Mapped[Optional[str]] = mapped_column(String(75), nullable=True)
    main_acct: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    fs: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    acct_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    normal_bal: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    exclude: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    active_flag: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class BeginningBalance(BaseModel, TenantMixin):
    """Account balance as of the global baseline date."""

    __tablename__ = "beginning_balance"
    __table_args__ = (
        UniqueConstraint("company_id", "account_code", name="uq_beginning_balance_company_account"),
    )

    account_code: Mapped[str] = mapped_column(String(75), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"), nullable=False)


class Vendor(BaseModel, TenantMixin):
    """Supplier named on disbursements and purchases."""

    __tablename__ = "vendors"
    __table_args__ = (
        UniqueConstraint("company_id", "vendor_code", name="uq_vendors_company_code"),
    )

    vendor_code: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_tin: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class Customer(BaseModel, TenantMixin):
    """Customer named on receipts and sales."""

    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("company_id", "customer_code", name="uq_customers_company_code"),
    )

    customer_code: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
