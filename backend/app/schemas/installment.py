"""
Installment Plan Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.finance_enums import PlanStatus, PlanFrequency, InstallmentStatus, PaymentMethod


class InstallmentSpec(BaseModel):
    """One scheduled payment as supplied by the caller."""
    due_date: datetime
    amount: Decimal = Field(..., gt=0)


class InstallmentTerms(BaseModel):
    """Installment terms of a sale."""
    down_payment: Decimal = Field(Decimal("0"), ge=0)
    frequency: PlanFrequency = PlanFrequency.MONTHLY
    start_date: Optional[datetime] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    installments: List[InstallmentSpec] = Field(..., min_length=1)


class InstallmentPlanCreate(BaseModel):
    buyer_id: int
    plot_id: int
    total_amount: Decimal = Field(..., gt=0)
    down_payment: Decimal = Field(Decimal("0"), ge=0)
    frequency: PlanFrequency = PlanFrequency.MONTHLY
    start_date: Optional[datetime] = None
    installments: List[InstallmentSpec] = Field(..., min_length=1)
    created_by: Optional[int] = None


class InstallmentPaymentRequest(BaseModel):
    installment_no: int = Field(..., ge=1)
    amount: Decimal = Field(..., gt=0)
    paid_date: Optional[datetime] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    processed_by: Optional[int] = None


class DownPaymentRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    payment_reference: Optional[str] = Field(None, max_length=100)
    processed_by: Optional[int] = None


class InstallmentResponse(BaseModel):
    installment_no: int
    due_date: datetime
    amount: float
    paid: bool
    paid_amount: float
    paid_date: Optional[datetime]
    payment_reference: Optional[str]
    status: InstallmentStatus
    late_fee: float

    class Config:
        from_attributes = True


class InstallmentPlanResponse(BaseModel):
    id: int
    buyer_id: int
    plot_id: int
    project_id: int
    total_amount: float
    down_payment: float
    down_payment_paid: bool
    down_payment_date: Optional[datetime]
    frequency: PlanFrequency
    start_date: datetime
    status: PlanStatus
    total_paid: float
    remaining_amount: float
    next_due_date: Optional[datetime]
    installments: List[InstallmentResponse]

    class Config:
        from_attributes = True


class OverdueInstallmentResponse(BaseModel):
    plan_id: int
    buyer_id: int
    plot_id: int
    installment_no: int
    due_date: datetime
    amount: float
    days_overdue: int

    class Config:
        from_attributes = True
