"""
Report Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional


class AgingBucketResponse(BaseModel):
    count: int
    amount: float

    class Config:
        from_attributes = True


class AgingReportResponse(BaseModel):
    as_of: datetime
    buckets: Dict[str, AgingBucketResponse]
    total_outstanding: float

    class Config:
        from_attributes = True


class ProfitAndLossResponse(BaseModel):
    income_plot_sales: float
    income_buyer_payments: float
    total_income: float
    seller_payments: float
    commissions: float
    partner_profits: float
    expenses: float
    total_costs: float
    gross_profit: float
    net_profit: float
    margin: float

    class Config:
        from_attributes = True


class CashFlowPeriodResponse(BaseModel):
    period: str
    inflows: float
    outflows: float
    net: float

    class Config:
        from_attributes = True


class CashFlowReportResponse(BaseModel):
    group_by: str
    start: Optional[datetime]
    end: Optional[datetime]
    periods: List[CashFlowPeriodResponse]
    total_inflows: float
    total_outflows: float
    net_cash_flow: float

    class Config:
        from_attributes = True
