"""
Sale Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from backend.app.models.plot import PlotStatus
from backend.app.models.finance_enums import PaymentMode
from backend.app.schemas.installment import InstallmentTerms, InstallmentPlanResponse
from backend.app.schemas.commission import CommissionResponse
from backend.app.schemas.seller_payment import SellerPaymentResponse


class SaleRequest(BaseModel):
    plot_id: int
    buyer_id: int
    sale_price: Decimal = Field(..., gt=0)
    payment_mode: PaymentMode = PaymentMode.FULL
    installment_plan: Optional[InstallmentTerms] = None
    processed_by: Optional[int] = None


class PlotSummary(BaseModel):
    id: int
    project_id: int
    plot_no: str
    size_marla: float
    status: PlotStatus
    seller_id: Optional[int]
    buyer_id: Optional[int]
    booked_by_agent_id: Optional[int]
    sold_at: Optional[datetime]
    sale_price: Optional[float]

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    plot: PlotSummary
    installment_plan: Optional[InstallmentPlanResponse]
    commission: Optional[CommissionResponse]
    seller_payment: Optional[SellerPaymentResponse]
    notified: bool

    class Config:
        from_attributes = True
