"""
Seller Payment Service (Domain Logic).

Amounts owed to plot sellers. status is always re-derived from
paid_amount against amount.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.config import settings
from backend.app.core.exceptions import ValidationError, AlreadyPaidError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, positive_money, percent_of, to_decimal
from backend.app.domain.ledger.ledger_service import LedgerService, coerce_enum
from backend.app.models.seller_payment import SellerPayment
from backend.app.models.plot import Plot
from backend.app.models.finance_enums import (
    SellerPaymentStatus, PaymentMode, LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.seller_payments")


def derive_seller_payment_status(amount, paid_amount) -> SellerPaymentStatus:
    amount, paid_amount = money(amount), money(paid_amount)
    if paid_amount <= 0:
        return SellerPaymentStatus.PENDING
    if paid_amount >= amount:
        return SellerPaymentStatus.PAID
    return SellerPaymentStatus.PARTIAL


def outstanding(payment: SellerPayment) -> Decimal:
    return money(payment.amount) - money(payment.paid_amount)


class SellerPaymentService:

    @staticmethod
    async def create_for_sale(
        db: AsyncSession,
        plot: Plot,
        sale_price: Decimal,
        mode: PaymentMode,
        created_by: Optional[int] = None
    ) -> SellerPayment:
        """
        Record the seller's cut of a sale and post the payable.

        Flush only: runs inside the sale's unit of work.
        """
        payout_percent = to_decimal(settings.seller_payout_percent, "seller_payout_percent")
        now = datetime.utcnow()
        payment = SellerPayment(
            seller_id=plot.seller_id,
            plot_id=plot.id,
            project_id=plot.project_id,
            amount=percent_of(sale_price, payout_percent),
            payout_percent=payout_percent,
            paid_amount=money(0),
            mode=mode,
            status=SellerPaymentStatus.PENDING,
            due_date=now
        )
        db.add(payment)
        await db.flush()

        await LedgerService.post(
            db,
            entry_type=LedgerEntryType.DEBIT,
            account=LedgerAccount.SELLER,
            category=LedgerCategory.SELLER_PAYMENT,
            amount=payment.amount,
            ref_id=payment.id,
            ref_type=LedgerRefType.SELLER_PAYMENT,
            description=f"Seller payment for plot {plot.plot_no}",
            date=now,
            project_id=plot.project_id,
            user_id=plot.seller_id,
            created_by=created_by
        )
        await log_event(
            db,
            action=AuditAction.SELLER_PAYMENT_CREATED,
            actor_id=created_by,
            entity_type="SellerPayment",
            entity_id=payment.id,
            metadata={"amount": str(payment.amount), "payout_percent": str(payout_percent)}
        )
        return payment

    @staticmethod
    async def record_payment(
        db: AsyncSession,
        payment_id: int,
        amount=None,
        payment_reference: Optional[str] = None,
        paid_date: Optional[datetime] = None,
        processed_by: Optional[int] = None
    ) -> SellerPayment:
        """
        Pay (part of) what is owed to a seller.

        amount defaults to the outstanding balance.

        Raises:
            NotFoundError: No such seller payment
            AlreadyPaidError: Nothing left to pay
            ValidationError: Amount above the outstanding balance
        """
        async with unit_of_work(db, lock_key("seller_payment", payment_id)):
            payment = await get_for_update(db, SellerPayment, payment_id, "Seller payment")
            if payment.status == SellerPaymentStatus.PAID:
                raise AlreadyPaidError(
                    f"Seller payment {payment_id} is already paid",
                    details={"seller_payment_id": payment_id}
                )
            balance = outstanding(payment)
            amount = positive_money(balance if amount is None else amount)
            if amount > balance:
                raise ValidationError(
                    f"Payment of {amount} exceeds outstanding balance {balance}",
                    details={"amount": str(amount), "outstanding": str(balance)}
                )

            paid_date = as_naive_utc(paid_date) or datetime.utcnow()
            payment.paid_amount = money(payment.paid_amount) + amount
            payment.status = derive_seller_payment_status(payment.amount, payment.paid_amount)
            payment.paid_date = paid_date
            payment.payment_reference = payment_reference

            await LedgerService.post(
                db,
                entry_type=LedgerEntryType.CREDIT,
                account=LedgerAccount.SELLER,
                category=LedgerCategory.SELLER_PAYMENT,
                amount=amount,
                ref_id=payment.id,
                ref_type=LedgerRefType.SELLER_PAYMENT,
                description=f"Payment to seller for plot {payment.plot_id}",
                date=paid_date,
                project_id=payment.project_id,
                user_id=payment.seller_id,
                payment_reference=payment_reference,
                created_by=processed_by
            )
            await log_event(
                db,
                action=AuditAction.SELLER_PAYMENT_RECORDED,
                actor_id=processed_by,
                entity_type="SellerPayment",
                entity_id=payment.id,
                metadata={"amount": str(amount), "status": payment.status.value}
            )
        return payment

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        seller_id: Optional[int] = None,
        status=None,
        project_id: Optional[int] = None
    ) -> List[SellerPayment]:
        query = select(SellerPayment)
        if seller_id is not None:
            query = query.where(SellerPayment.seller_id == seller_id)
        if status is not None:
            query = query.where(SellerPayment.status == coerce_enum(SellerPaymentStatus, status, "status"))
        if project_id is not None:
            query = query.where(SellerPayment.project_id == project_id)
        result = await db.execute(query.order_by(SellerPayment.id.desc()))
        return result.scalars().all()
