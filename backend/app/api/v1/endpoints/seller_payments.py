"""
Seller Payment API Endpoints.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.domain.sales.seller_payment_service import SellerPaymentService
from backend.app.models.finance_enums import SellerPaymentStatus
from backend.app.schemas.seller_payment import SellerPaymentRequest, SellerPaymentResponse

router = APIRouter(prefix="/seller-payments", tags=["Seller Payments"])


@router.get("", response_model=List[SellerPaymentResponse])
async def list_seller_payments(
    seller_id: Optional[int] = Query(None),
    status: Optional[SellerPaymentStatus] = Query(None),
    project_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await SellerPaymentService.list_payments(db, seller_id=seller_id, status=status, project_id=project_id)


@router.post("/{payment_id}/pay", response_model=SellerPaymentResponse)
async def pay_seller(
    payment_id: int = Path(..., description="Seller payment ID"),
    request: Optional[SellerPaymentRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Pay a seller; without an amount the outstanding balance is paid."""
    request = request or SellerPaymentRequest()
    return await SellerPaymentService.record_payment(
        db,
        payment_id,
        amount=request.amount,
        payment_reference=request.payment_reference,
        paid_date=request.paid_date,
        processed_by=request.processed_by
    )
