"""
Ledger Reports - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TenantMixin, TimestampMixin
from app.models.reference import (
    AccountCode,
    AccountMain,
    BeginningBalance,
    Customer,
    Vendor,
)
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

__all__ = [
    "BaseModel",
    "TenantMixin",
    "TimestampMixin",
    "AccountCode",
    "AccountMain",
    "BeginningBalance",
    "Customer",
    "Vendor",
    "GeneralJournal",
    "GeneralJournalDetail",
    "CashDisbursement",
    "CashDisbursementDetail",
    "CashReceipt",
    "CashReceiptDetail",
    "CashPurchase",
    "CashPurchaseDetail",
    "CashSale",
    "CashSaleDetail",
]
