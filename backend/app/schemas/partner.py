"""
Partner Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.finance_enums import PartnerStatus, CapitalTransactionType, DistributionStatus


class PartnerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    share_percent: Decimal = Field(..., ge=0, le=100)
    investment_amount: Decimal = Field(Decimal("0"), ge=0)
    actor_id: Optional[int] = None


class PartnerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    phone: Optional[str] = Field(None, max_length=50)
    share_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    status: Optional[PartnerStatus] = None
    actor_id: Optional[int] = None


class CapitalTransactionCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    transaction_type: CapitalTransactionType
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=255)
    actor_id: Optional[int] = None


class ProfitDistributionCreate(BaseModel):
    """Profit to split; share_percent defaults to the partner's own share."""
    total_amount: Decimal = Field(..., ge=0)
    share_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    project_id: Optional[int] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    actor_id: Optional[int] = None


class ProfitDistributionApprove(BaseModel):
    payment_reference: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[datetime] = None
    actor_id: Optional[int] = None


class CapitalTransactionResponse(BaseModel):
    id: int
    amount: float
    transaction_type: CapitalTransactionType
    date: datetime
    reference: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class ProfitDistributionResponse(BaseModel):
    id: int
    partner_id: int
    project_id: Optional[int]
    amount: float
    share_percent: float
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    status: DistributionStatus
    payment_reference: Optional[str]
    distributed_at: Optional[datetime]

    class Config:
        from_attributes = True


class PartnerResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]
    share_percent: float
    investment_amount: float
    capital_injected: float
    withdrawals: float
    profit_credited: float
    current_capital: float
    pending_profit: float
    status: PartnerStatus
    join_date: datetime
    capital_transactions: List[CapitalTransactionResponse]
    profit_distributions: List[ProfitDistributionResponse]

    class Config:
        from_attributes = True


class DistributionLineResponse(BaseModel):
    partner_id: int
    distribution_id: int
    share_percent: float
    amount: float

    class Config:
        from_attributes = True
