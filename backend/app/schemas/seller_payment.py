"""
Seller Payment Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from backend.app.models.finance_enums import SellerPaymentStatus, PaymentMode


class SellerPaymentRequest(BaseModel):
    """amount omitted = pay the outstanding balance."""
    amount: Optional[Decimal] = Field(None, gt=0)
    payment_reference: Optional[str] = Field(None, max_length=100)
    paid_date: Optional[datetime] = None
    processed_by: Optional[int] = None


class SellerPaymentResponse(BaseModel):
    id: int
    seller_id: int
    plot_id: int
    project_id: int
    amount: float
    payout_percent: float
    paid_amount: float
    mode: PaymentMode
    status: SellerPaymentStatus
    due_date: datetime
    paid_date: Optional[datetime]
    payment_reference: Optional[str]

    class Config:
        from_attributes = True
