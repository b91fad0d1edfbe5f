"""
Commission Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from backend.app.models.finance_enums import CommissionRuleType, CommissionStatus, PaymentMethod


class CommissionRuleCreate(BaseModel):
    """Schema for creating a commission rule. max_size omitted = unbounded."""
    project_id: Optional[int] = None
    min_size: Decimal = Field(Decimal("0"), ge=0)
    max_size: Optional[Decimal] = Field(None, ge=0)
    rule_type: CommissionRuleType
    value: Decimal = Field(..., ge=0)
    priority: int = 0
    description: Optional[str] = Field(None, max_length=255)
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    created_by: Optional[int] = None


class CommissionRuleResponse(BaseModel):
    id: int
    project_id: Optional[int]
    min_size: float
    max_size: Optional[float]
    rule_type: CommissionRuleType
    value: float
    active: bool
    priority: int
    description: Optional[str]
    effective_from: datetime
    effective_to: Optional[datetime]

    class Config:
        from_attributes = True


class CommissionPreviewRequest(BaseModel):
    plot_id: int
    sale_price: Decimal = Field(..., gt=0)


class CommissionPreviewResponse(BaseModel):
    amount: float
    rule_id: Optional[int]

    class Config:
        from_attributes = True


class CommissionApproveRequest(BaseModel):
    approved_by: int
    adjusted_amount: Optional[Decimal] = Field(None, ge=0)


class CommissionPayRequest(BaseModel):
    payment_date: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    payment_reference: Optional[str] = Field(None, max_length=100)
    processed_by: Optional[int] = None


class CommissionResponse(BaseModel):
    id: int
    agent_id: int
    plot_id: int
    project_id: int
    rule_id: Optional[int]
    amount: float
    calculated_amount: float
    status: CommissionStatus
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    payment_date: Optional[datetime]
    payment_reference: Optional[str]
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True
