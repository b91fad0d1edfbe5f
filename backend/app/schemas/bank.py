"""
Bank Account Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.finance_enums import LedgerEntryType
from backend.app.schemas.ledger import LedgerEntryResponse


class BankAccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    bank: str = Field(..., min_length=1, max_length=150)
    account_no: str = Field(..., min_length=1, max_length=50)
    currency: str = Field("PKR", min_length=3, max_length=3)
    opening_balance: Decimal = Decimal("0")
    opening_date: Optional[datetime] = None
    actor_id: Optional[int] = None


class StatementRow(BaseModel):
    """An already-parsed statement row. Negative amount = money out."""
    date: datetime
    description: str = ""
    amount: Decimal
    balance: Optional[Decimal] = None
    reference: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=50)
    transaction_type: Optional[LedgerEntryType] = None


class StatementImport(BaseModel):
    rows: List[StatementRow]
    actor_id: Optional[int] = None


class MatchRequest(BaseModel):
    ledger_entry_id: int
    actor_id: Optional[int] = None


class BankTransactionResponse(BaseModel):
    id: int
    bank_account_id: int
    date: datetime
    description: str
    amount: float
    transaction_type: LedgerEntryType
    balance: Optional[float]
    reference: Optional[str]
    category: Optional[str]
    matched: bool
    matched_to: Optional[int]
    matched_at: Optional[datetime]

    class Config:
        from_attributes = True


class BankAccountResponse(BaseModel):
    id: int
    name: str
    bank: str
    account_no: str
    currency: str
    balance: float
    opening_balance: float
    opening_date: datetime
    is_active: bool

    class Config:
        from_attributes = True


class StatementImportResponse(BaseModel):
    account: BankAccountResponse
    transactions_added: int


class MatchResponse(BaseModel):
    transaction: BankTransactionResponse
    ledger_entry: LedgerEntryResponse

    class Config:
        from_attributes = True


class UnmatchedResponse(BaseModel):
    account: BankAccountResponse
    transactions: List[BankTransactionResponse]
    total_amount: float
