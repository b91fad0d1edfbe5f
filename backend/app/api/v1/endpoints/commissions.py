"""
Commission API Endpoints.

Commission rule management and the approve/pay/cancel workflow.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.domain.commissions.commission_service import CommissionService
from backend.app.models.finance_enums import CommissionStatus
from backend.app.schemas.common import ActorRequest
from backend.app.schemas.commission import (
    CommissionRuleCreate, CommissionRuleResponse,
    CommissionPreviewRequest, CommissionPreviewResponse,
    CommissionApproveRequest, CommissionPayRequest, CommissionResponse
)

rules_router = APIRouter(prefix="/commission-rules", tags=["Commission Rules"])
router = APIRouter(prefix="/commissions", tags=["Commissions"])


# --- Rules ---

@rules_router.get("", response_model=List[CommissionRuleResponse])
async def list_rules(
    project_id: Optional[int] = Query(None),
    active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """List commission rules in resolution order."""
    return await CommissionService.list_rules(db, project_id=project_id, active=active)


@rules_router.post("", response_model=CommissionRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    rule: CommissionRuleCreate,
    db: AsyncSession = Depends(get_db)
):
    return await CommissionService.create_rule(db, **rule.model_dump())


@rules_router.post("/{rule_id}/deactivate", response_model=CommissionRuleResponse)
async def deactivate_rule(
    rule_id: int = Path(..., description="Commission rule ID"),
    body: Optional[ActorRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    return await CommissionService.deactivate_rule(db, rule_id, actor_id=body.actor_id if body else None)


# --- Commissions ---

@router.post("/preview", response_model=CommissionPreviewResponse)
async def preview_commission(
    request: CommissionPreviewRequest,
    db: AsyncSession = Depends(get_db)
):
    """Resolve the commission a sale would earn, without saving anything."""
    resolution = await CommissionService.preview(db, request.plot_id, request.sale_price)
    return CommissionPreviewResponse.model_validate(resolution)


@router.get("", response_model=List[CommissionResponse])
async def list_commissions(
    agent_id: Optional[int] = Query(None),
    status: Optional[CommissionStatus] = Query(None),
    project_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await CommissionService.list_commissions(db, agent_id=agent_id, status=status, project_id=project_id)


@router.post("/{commission_id}/approve", response_model=CommissionResponse)
async def approve_commission(
    request: CommissionApproveRequest,
    commission_id: int = Path(..., description="Commission ID"),
    db: AsyncSession = Depends(get_db)
):
    """Approve a PENDING commission."""
    return await CommissionService.approve(
        db, commission_id, approved_by=request.approved_by, adjusted_amount=request.adjusted_amount
    )


@router.post("/{commission_id}/pay", response_model=CommissionResponse)
async def pay_commission(
    commission_id: int = Path(..., description="Commission ID"),
    request: Optional[CommissionPayRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Pay an APPROVED commission."""
    request = request or CommissionPayRequest()
    return await CommissionService.pay(
        db,
        commission_id,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        payment_reference=request.payment_reference,
        processed_by=request.processed_by
    )


@router.post("/{commission_id}/cancel", response_model=CommissionResponse)
async def cancel_commission(
    commission_id: int = Path(..., description="Commission ID"),
    body: Optional[ActorRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Cancel a commission that has not been paid."""
    return await CommissionService.cancel(db, commission_id, actor_id=body.actor_id if body else None)
