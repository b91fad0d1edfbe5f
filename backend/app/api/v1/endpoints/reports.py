"""
Report API Endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional

from backend.app.db.session import get_db
from backend.app.domain.reports.report_service import ReportService
from backend.app.schemas.report import AgingReportResponse, ProfitAndLossResponse, CashFlowReportResponse

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/receivables-aging", response_model=AgingReportResponse)
async def receivables_aging(
    as_of: Optional[datetime] = Query(None, description="Defaults to now (UTC)"),
    project_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Unpaid installments grouped by how overdue they are."""
    report = await ReportService.receivables_aging(db, now=as_of, project_id=project_id)
    return AgingReportResponse.model_validate(report)


@router.get("/profit-loss", response_model=ProfitAndLossResponse)
async def profit_and_loss(
    project_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    report = await ReportService.profit_and_loss(db, project_id=project_id, start=start, end=end)
    return ProfitAndLossResponse.model_validate(report)


@router.get("/cash-flow", response_model=CashFlowReportResponse)
async def cash_flow(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    group_by: str = Query("month", pattern="^(day|week|month)$"),
    project_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Inflows, outflows and net cash per period."""
    report = await ReportService.cash_flow(
        db, start=start, end=end, group_by=group_by, project_id=project_id
    )
    return CashFlowReportResponse.model_validate(report)
