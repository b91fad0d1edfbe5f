"""
Sale Workflow (Domain Logic).

Sells a plot as one unit of work:
1. Validate the plot (exists, AVAILABLE or RESERVED)
2. Mark it SOLD to the buyer
3. Installment plan (down payment booked as paid) or one full-payment income credit
4. Agent commission when the plot was booked by an agent and a rule applies
5. Seller payable at the configured payout percent
6. Buyer/agent notification, after commit and best-effort

Steps 2-5 commit or roll back together.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationError, InvalidStateError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError, notification_circuit_breaker
from backend.app.domain.money import positive_money
from backend.app.domain.ledger.ledger_service import LedgerService, coerce_enum
from backend.app.domain.commissions.commission_resolver import CommissionResolver
from backend.app.domain.commissions.commission_service import CommissionService
from backend.app.domain.installments.installment_service import InstallmentService
from backend.app.domain.sales.seller_payment_service import SellerPaymentService
from backend.app.models.plot import Plot, PlotStatus, SELLABLE_STATUSES
from backend.app.models.installment_plan import InstallmentPlan
from backend.app.models.commission import Commission
from backend.app.models.seller_payment import SellerPayment
from backend.app.models.finance_enums import (
    PaymentMode, LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.sales")


@dataclass
class SaleResult:
    plot: Plot
    installment_plan: Optional[InstallmentPlan] = None
    commission: Optional[Commission] = None
    seller_payment: Optional[SellerPayment] = None
    notified: bool = False


class SaleWorkflow:

    @staticmethod
    async def process_sale(
        db: AsyncSession,
        plot_id: int,
        buyer_id: int,
        sale_price,
        payment_mode=PaymentMode.FULL,
        installment_plan: Optional[dict] = None,
        processed_by: Optional[int] = None,
        notifier=None,
        breaker: Optional[CircuitBreaker] = None
    ) -> SaleResult:
        """
        Sell a plot.

        Args:
            installment_plan: required for the installments mode; keys
                `installments` (list of {due_date, amount}), optional
                `down_payment`, `frequency`, `start_date`, `payment_reference`
            notifier: object exposing `sale_completed(...)`; None skips step 6

        Raises:
            ValidationError: Bad price, mode or missing plan terms
            NotFoundError: Plot does not exist
            InvalidStateError: Plot is not AVAILABLE or RESERVED
        """
        payment_mode = coerce_enum(PaymentMode, payment_mode, "payment mode")
        sale_price = positive_money(sale_price, "sale_price")
        if payment_mode == PaymentMode.INSTALLMENTS and not installment_plan:
            raise ValidationError(
                "Installment terms are required for an installments sale",
                details={"payment_mode": payment_mode.value}
            )

        async with unit_of_work(db, lock_key("plot", plot_id)):
            # 1. Validate plot
            plot = await get_for_update(db, Plot, plot_id, "Plot")
            if plot.status not in SELLABLE_STATUSES:
                raise InvalidStateError(
                    f"Plot is {plot.status.value} and cannot be sold",
                    details={"plot_id": plot.id, "status": plot.status.value}
                )

            # 2. Mark sold
            now = datetime.utcnow()
            plot.status = PlotStatus.SOLD
            plot.buyer_id = buyer_id
            plot.sold_at = now
            plot.sale_price = sale_price
            await db.flush()
            result = SaleResult(plot=plot)

            # 3. Buyer side
            if payment_mode == PaymentMode.INSTALLMENTS:
                result.installment_plan = await InstallmentService.build_plan(
                    db,
                    buyer_id=buyer_id,
                    plot=plot,
                    total_amount=sale_price,
                    down_payment=installment_plan.get("down_payment") or 0,
                    installments=installment_plan.get("installments") or [],
                    frequency=installment_plan.get("frequency") or "monthly",
                    start_date=installment_plan.get("start_date"),
                    down_payment_paid=True,
                    payment_reference=installment_plan.get("payment_reference"),
                    down_payment_category=LedgerCategory.PLOT_SALE,
                    created_by=processed_by
                )
            else:
                await LedgerService.post(
                    db,
                    entry_type=LedgerEntryType.CREDIT,
                    account=LedgerAccount.INCOME,
                    category=LedgerCategory.PLOT_SALE,
                    amount=sale_price,
                    ref_id=plot.id,
                    ref_type=LedgerRefType.PLOT,
                    description=f"Full payment for plot {plot.plot_no}",
                    date=now,
                    project_id=plot.project_id,
                    user_id=buyer_id,
                    created_by=processed_by
                )

            # 4. Agent commission
            if plot.booked_by_agent_id:
                resolution = await CommissionResolver.resolve_for_plot(db, plot, sale_price, as_of=now)
                if resolution.amount > 0:
                    result.commission = await CommissionService.create_for_sale(
                        db, plot, plot.booked_by_agent_id, resolution, created_by=processed_by
                    )

            # 5. Seller payable
            if plot.seller_id:
                result.seller_payment = await SellerPaymentService.create_for_sale(
                    db, plot, sale_price, payment_mode, created_by=processed_by
                )

            await log_event(
                db,
                action=AuditAction.SALE_PROCESSED,
                actor_id=processed_by,
                entity_type="Plot",
                entity_id=plot.id,
                metadata={
                    "buyer_id": buyer_id,
                    "sale_price": str(sale_price),
                    "payment_mode": payment_mode.value,
                    "installment_plan_id": result.installment_plan.id if result.installment_plan else None,
                    "commission_id": result.commission.id if result.commission else None,
                    "seller_payment_id": result.seller_payment.id if result.seller_payment else None,
                }
            )

        logger.info(
            "Sale processed",
            extra={
                "plot_id": plot_id,
                "buyer_id": buyer_id,
                "sale_price": str(sale_price),
                "payment_mode": payment_mode.value,
            }
        )

        # 6. Notify (never fails the sale)
        if notifier is not None:
            result.notified = await SaleWorkflow._notify(notifier, result, breaker or notification_circuit_breaker)
        return result

    @staticmethod
    async def _notify(notifier, result: SaleResult, breaker: CircuitBreaker) -> bool:
        plot = result.plot
        commission = result.commission
        try:
            await breaker.call(
                notifier.sale_completed,
                buyer_id=plot.buyer_id,
                plot_id=plot.id,
                plot_no=plot.plot_no,
                sale_price=str(plot.sale_price),
                agent_id=commission.agent_id if commission else None,
                commission_amount=str(commission.amount) if commission else None
            )
            return True
        except CircuitOpenError:
            logger.warning("Sale notification skipped, circuit open", extra={"plot_id": plot.id})
        except asyncio.TimeoutError:
            logger.warning("Sale notification timed out", extra={"plot_id": plot.id})
        except Exception:
            logger.exception("Sale notification failed", extra={"plot_id": plot.id})
        return False
