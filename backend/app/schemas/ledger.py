"""
Ledger Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.finance_enums import (
    LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType, PaymentMethod
)


class LedgerEntryCreate(BaseModel):
    """Schema for a manually keyed ledger entry."""
    entry_type: LedgerEntryType
    account: LedgerAccount
    category: LedgerCategory
    amount: Decimal = Field(..., ge=0)
    ref_id: Optional[int] = None  # may be omitted for ref_type "Transaction" only
    ref_type: LedgerRefType
    description: str = Field(..., min_length=1, max_length=255)
    date: Optional[datetime] = None
    project_id: Optional[int] = None
    user_id: Optional[int] = None
    partner_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    bank_account_id: Optional[int] = None
    created_by: Optional[int] = None


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=255)
    project_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    created_by: Optional[int] = None


class LedgerEntryResponse(BaseModel):
    id: int
    entry_type: LedgerEntryType
    account: LedgerAccount
    category: LedgerCategory
    amount: float
    description: str
    ref_id: Optional[int]
    ref_type: LedgerRefType
    date: datetime
    project_id: Optional[int]
    user_id: Optional[int]
    partner_id: Optional[int]
    payment_method: Optional[PaymentMethod]
    payment_reference: Optional[str]
    bank_account_id: Optional[int]
    reconciled: bool
    reconciled_at: Optional[datetime]

    class Config:
        from_attributes = True


class AccountLedgerLine(BaseModel):
    entry: LedgerEntryResponse
    balance: float

    class Config:
        from_attributes = True


class AccountLedgerResponse(BaseModel):
    account: LedgerAccount
    lines: List[AccountLedgerLine]
    closing_balance: float

    class Config:
        from_attributes = True
