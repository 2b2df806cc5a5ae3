"""
Ledger Reports - Journal Models

The five books of original entry. Each book is a header table (one posted
document) with detail lines carrying the account code and the debit or
credit amount. Cancelled headers stay in the table with ``is_cancelled`` set.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, TenantMixin


class JournalHeaderMixin(TenantMixin):
    """Columns shared by every journal header."""

    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sum_debit: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"), nullable=False)
    sum_credit: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"), nullable=False)


class JournalDetailMixin:
    """Columns shared by every journal detail line."""

    acct_code: Mapped[str] = mapped_column(String(75), nullable=False, index=True)
    debit: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"), nullable=False)
    credit: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"), nullable=False)


# ===========================================
# GENERAL JOURNAL (G)
# ===========================================

class GeneralJournal(BaseModel, JournalHeaderMixin):
    """General journal voucher."""

    __tablename__ = "general_accounting"

    ga_no: Mapped[str] = mapped_column(String(50), nullable=False)
    gen_acct_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    details: Mapped[List["GeneralJournalDetail"]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
    )


class GeneralJournalDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "general_accounting_details"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("general_accounting.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    header: Mapped["GeneralJournal"] = relationship(back_populates="details")


# ===========================================
# CASH DISBURSEMENTS (D)
# ===========================================

class CashDisbursement(BaseModel, JournalHeaderMixin):
    """Cash disbursement voucher paid to a vendor."""

    __tablename__ = "cash_disbursement"

    cd_no: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    disburse_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    details: Mapped[List["CashDisbursementDetail"]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
    )


class CashDisbursementDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_disbursement_details"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("cash_disbursement.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    header: Mapped["CashDisbursement"] = relationship(back_populates="details")


# ===========================================
# CASH RECEIPTS (R)
# ===========================================

class CashReceipt(BaseModel, JournalHeaderMixin):
    """Collection receipt from a customer."""

    __tablename__ = "cash_receipts"

    cr_no: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    details_text: Mapped[Optional[str]] = mapped_column("details", Text, nullable=True)

    details: Mapped[List["CashReceiptDetail"]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
    )


class CashReceiptDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_receipt_details"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("cash_receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    header: Mapped["CashReceipt"] = relationship(back_populates="details")


# ===========================================
# CASH PURCHASES (P)
# ===========================================

class CashPurchase(BaseModel, JournalHeaderMixin):
    """Cash purchase from a vendor."""

    __tablename__ = "cash_purchase"

    cp_no: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    details: Mapped[List["CashPurchaseDetail"]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
    )


class CashPurchaseDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_purchase_details"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("cash_purchase.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    header: Mapped["CashPurchase"] = relationship(back_populates="details")


# ===========================================
# CASH SALES (S)
# ===========================================

class CashSale(BaseModel, JournalHeaderMixin):
    """Cash sale to a customer."""

    __tablename__ = "cash_sales"

    cs_no: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sales_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    details: Mapped[List["CashSaleDetail"]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
    )


class CashSaleDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_sales_details"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("cash_sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    header: Mapped["CashSale"] = relationship(back_populates="details")
