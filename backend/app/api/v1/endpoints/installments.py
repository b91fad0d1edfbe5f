"""
Installment Plan API Endpoints.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.domain.installments.installment_service import InstallmentService
from backend.app.models.finance_enums import PlanStatus
from backend.app.schemas.common import ActorRequest
from backend.app.schemas.installment import (
    InstallmentPlanCreate, InstallmentPlanResponse, InstallmentPaymentRequest,
    DownPaymentRequest, OverdueInstallmentResponse
)

router = APIRouter(prefix="/installment-plans", tags=["Installment Plans"])


@router.post("", response_model=InstallmentPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan: InstallmentPlanCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a plan for an existing plot. The down payment stays due."""
    return await InstallmentService.create_plan(
        db,
        buyer_id=plan.buyer_id,
        plot_id=plan.plot_id,
        total_amount=plan.total_amount,
        down_payment=plan.down_payment,
        installments=[item.model_dump() for item in plan.installments],
        frequency=plan.frequency,
        start_date=plan.start_date,
        created_by=plan.created_by
    )


@router.get("", response_model=List[InstallmentPlanResponse])
async def list_plans(
    buyer_id: Optional[int] = Query(None),
    plot_id: Optional[int] = Query(None),
    status: Optional[PlanStatus] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await InstallmentService.list_plans(db, buyer_id=buyer_id, plot_id=plot_id, status=status)


@router.get("/overdue", response_model=List[OverdueInstallmentResponse])
async def overdue_installments(
    as_of: Optional[datetime] = Query(None, description="Defaults to now (UTC)"),
    db: AsyncSession = Depends(get_db)
):
    """Unpaid installments past their due date on active plans."""
    overdue = await InstallmentService.overdue_installments(db, now=as_of)
    return [OverdueInstallmentResponse.model_validate(item) for item in overdue]


@router.get("/{plan_id}", response_model=InstallmentPlanResponse)
async def get_plan(
    plan_id: int = Path(..., description="Installment plan ID"),
    db: AsyncSession = Depends(get_db)
):
    return await InstallmentService.get_plan(db, plan_id)


@router.post("/{plan_id}/pay", response_model=InstallmentPlanResponse)
async def pay_installment(
    payment: InstallmentPaymentRequest,
    plan_id: int = Path(..., description="Installment plan ID"),
    db: AsyncSession = Depends(get_db)
):
    """Pay one installment; the plan totals are re-derived."""
    return await InstallmentService.pay_installment(
        db,
        plan_id,
        installment_no=payment.installment_no,
        amount=payment.amount,
        paid_date=payment.paid_date,
        payment_reference=payment.payment_reference,
        payment_method=payment.payment_method,
        processed_by=payment.processed_by
    )


@router.post("/{plan_id}/down-payment", response_model=InstallmentPlanResponse)
async def pay_down_payment(
    plan_id: int = Path(..., description="Installment plan ID"),
    payment: Optional[DownPaymentRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    payment = payment or DownPaymentRequest()
    return await InstallmentService.pay_down_payment(
        db,
        plan_id,
        amount=payment.amount,
        payment_reference=payment.payment_reference,
        processed_by=payment.processed_by
    )


@router.post("/{plan_id}/cancel", response_model=InstallmentPlanResponse)
async def cancel_plan(
    plan_id: int = Path(..., description="Installment plan ID"),
    body: Optional[ActorRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    return await InstallmentService.cancel(db, plan_id, actor_id=body.actor_id if body else None)


@router.post("/{plan_id}/default", response_model=InstallmentPlanResponse)
async def mark_defaulted(
    plan_id: int = Path(..., description="Installment plan ID"),
    body: Optional[ActorRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    return await InstallmentService.mark_defaulted(db, plan_id, actor_id=body.actor_id if body else None)
