"""
Sales API Endpoints.

Processes a plot sale end to end.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_notifier
from backend.app.domain.sales.sale_workflow import SaleWorkflow
from backend.app.schemas.sale import SaleRequest, SaleResponse

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
async def process_sale(
    sale: SaleRequest,
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """
    Sell a plot.

    Creates the installment plan (or full-payment income entry), the agent
    commission and the seller payable in one transaction, then notifies
    the buyer and agent.
    """
    plan_terms = None
    if sale.installment_plan is not None:
        plan_terms = sale.installment_plan.model_dump()

    result = await SaleWorkflow.process_sale(
        db,
        plot_id=sale.plot_id,
        buyer_id=sale.buyer_id,
        sale_price=sale.sale_price,
        payment_mode=sale.payment_mode,
        installment_plan=plan_terms,
        processed_by=sale.processed_by,
        notifier=notifier
    )
    return SaleResponse.model_validate(result)
