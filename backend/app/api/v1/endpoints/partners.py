"""
Partner API Endpoints.

Partner registry, capital movements and profit distributions.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.domain.partners.partner_service import PartnerService
from backend.app.models.finance_enums import PartnerStatus
from backend.app.schemas.partner import (
    PartnerCreate, PartnerUpdate, PartnerResponse, CapitalTransactionCreate,
    ProfitDistributionCreate, ProfitDistributionApprove, ProfitDistributionResponse,
    DistributionLineResponse
)

router = APIRouter(prefix="/partners", tags=["Partners"])


@router.get("", response_model=List[PartnerResponse])
async def list_partners(
    status: Optional[PartnerStatus] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await PartnerService.list_partners(db, status=status)


@router.post("", response_model=PartnerResponse, status_code=status.HTTP_201_CREATED)
async def create_partner(
    partner: PartnerCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a partner. Shares across partners may not exceed 100%."""
    return await PartnerService.create_partner(
        db,
        name=partner.name,
        email=partner.email,
        phone=partner.phone,
        share_percent=partner.share_percent,
        investment_amount=partner.investment_amount,
        actor_id=partner.actor_id
    )


@router.post("/distributions", response_model=List[DistributionLineResponse], status_code=status.HTTP_201_CREATED)
async def distribute_profit_to_all(
    distribution: ProfitDistributionCreate,
    db: AsyncSession = Depends(get_db)
):
    """Split a profit across all active partners by their shares."""
    lines = await PartnerService.distribute_profit_to_all(
        db,
        total_amount=distribution.total_amount,
        project_id=distribution.project_id,
        period_start=distribution.period_start,
        period_end=distribution.period_end,
        actor_id=distribution.actor_id
    )
    return [DistributionLineResponse.model_validate(line) for line in lines]


@router.get("/{partner_id}", response_model=PartnerResponse)
async def get_partner(
    partner_id: int = Path(..., description="Partner ID"),
    db: AsyncSession = Depends(get_db)
):
    return await PartnerService.get_partner(db, partner_id)


@router.patch("/{partner_id}", response_model=PartnerResponse)
async def update_partner(
    update: PartnerUpdate,
    partner_id: int = Path(..., description="Partner ID"),
    db: AsyncSession = Depends(get_db)
):
    return await PartnerService.update_partner(
        db,
        partner_id,
        share_percent=update.share_percent,
        status=update.status,
        name=update.name,
        phone=update.phone,
        actor_id=update.actor_id
    )


@router.post("/{partner_id}/capital", response_model=PartnerResponse)
async def add_capital(
    transaction: CapitalTransactionCreate,
    partner_id: int = Path(..., description="Partner ID"),
    db: AsyncSession = Depends(get_db)
):
    """Record a capital injection or withdrawal."""
    return await PartnerService.add_capital(
        db,
        partner_id,
        amount=transaction.amount,
        transaction_type=transaction.transaction_type,
        reference=transaction.reference,
        notes=transaction.notes,
        actor_id=transaction.actor_id
    )


@router.post(
    "/{partner_id}/distributions",
    response_model=ProfitDistributionResponse,
    status_code=status.HTTP_201_CREATED
)
async def distribute_profit(
    distribution: ProfitDistributionCreate,
    partner_id: int = Path(..., description="Partner ID"),
    db: AsyncSession = Depends(get_db)
):
    return await PartnerService.distribute_profit(
        db,
        partner_id,
        total_amount=distribution.total_amount,
        share_percent=distribution.share_percent,
        project_id=distribution.project_id,
        period_start=distribution.period_start,
        period_end=distribution.period_end,
        actor_id=distribution.actor_id
    )


@router.post("/{partner_id}/distributions/{distribution_id}/approve", response_model=ProfitDistributionResponse)
async def approve_distribution(
    partner_id: int = Path(..., description="Partner ID"),
    distribution_id: int = Path(..., description="Profit distribution ID"),
    approval: Optional[ProfitDistributionApprove] = None,
    db: AsyncSession = Depends(get_db)
):
    """Pay out a pending distribution."""
    approval = approval or ProfitDistributionApprove()
    return await PartnerService.approve_distribution(
        db,
        partner_id,
        distribution_id,
        payment_reference=approval.payment_reference,
        payment_date=approval.payment_date,
        actor_id=approval.actor_id
    )
