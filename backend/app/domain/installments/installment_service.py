"""
Installment Service (Domain Logic).

Owns buyer installment plans. Every payment re-derives the plan totals
through plan_state.apply_state and posts a buyer credit to the ledger.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import ValidationError, NotFoundError, InvalidStateError, AlreadyPaidError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, non_negative_money, positive_money
from backend.app.domain.ledger.ledger_service import LedgerService, coerce_enum
from backend.app.domain.installments.plan_state import apply_state, is_overdue, days_overdue
from backend.app.models.installment_plan import InstallmentPlan, Installment
from backend.app.models.plot import Plot
from backend.app.models.finance_enums import (
    PlanStatus, PlanFrequency, InstallmentStatus,
    LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType, PaymentMethod
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.installments")


@dataclass
class OverdueInstallment:
    plan_id: int
    buyer_id: int
    plot_id: int
    installment_no: int
    due_date: datetime
    amount: Decimal
    days_overdue: int


def _require_active(plan: InstallmentPlan, action: str) -> None:
    if plan.status != PlanStatus.ACTIVE:
        raise InvalidStateError(
            f"Cannot {action} on installment plan {plan.id} with status {plan.status.value}",
            details={"plan_id": plan.id, "status": plan.status.value}
        )


class InstallmentService:

    @staticmethod
    async def build_plan(
        db: AsyncSession,
        buyer_id: int,
        plot: Plot,
        total_amount,
        down_payment,
        installments: Sequence[dict],
        frequency=PlanFrequency.MONTHLY,
        start_date: Optional[datetime] = None,
        down_payment_paid: bool = False,
        payment_reference: Optional[str] = None,
        down_payment_category=LedgerCategory.INSTALLMENT,
        created_by: Optional[int] = None
    ) -> InstallmentPlan:
        """
        Create a plan with installments numbered 1..N in the given order.

        Each installment dict carries `due_date` and `amount`. When the down
        payment is already received it is marked paid and posted as a buyer
        credit. Flush only; the caller's unit of work commits.

        Raises:
            ValidationError: Empty schedule or malformed amounts
        """
        total_amount = positive_money(total_amount, "total_amount")
        down_payment = non_negative_money(down_payment or 0, "down_payment")
        frequency = coerce_enum(PlanFrequency, frequency, "frequency")
        if down_payment > total_amount:
            raise ValidationError(
                "Down payment cannot exceed the total amount",
                details={"down_payment": str(down_payment), "total_amount": str(total_amount)}
            )
        if not installments:
            raise ValidationError("An installment plan needs at least one installment")

        now = datetime.utcnow()
        plan = InstallmentPlan(
            buyer_id=buyer_id,
            plot_id=plot.id,
            project_id=plot.project_id,
            total_amount=total_amount,
            down_payment=down_payment,
            down_payment_paid=down_payment_paid and down_payment > 0,
            down_payment_date=now if down_payment_paid and down_payment > 0 else None,
            frequency=frequency,
            start_date=as_naive_utc(start_date) or now,
            status=PlanStatus.ACTIVE,
        )
        for index, spec in enumerate(installments, start=1):
            due_date = as_naive_utc(spec.get("due_date"))
            if due_date is None:
                raise ValidationError(
                    f"Installment {index} has no due date",
                    details={"installment_no": index}
                )
            plan.installments.append(Installment(
                installment_no=index,
                due_date=due_date,
                amount=positive_money(spec.get("amount"), f"installments[{index}].amount"),
                paid=False,
                paid_amount=money(0),
                status=InstallmentStatus.PENDING,
                late_fee=money(0),
            ))
        apply_state(plan, now)
        db.add(plan)
        await db.flush()

        if plan.down_payment_paid:
            await LedgerService.post(
                db,
                entry_type=LedgerEntryType.CREDIT,
                account=LedgerAccount.BUYER,
                category=down_payment_category,
                amount=down_payment,
                ref_id=plan.id,
                ref_type=LedgerRefType.INSTALLMENT_PLAN,
                description=f"Down payment for plot {plot.plot_no}",
                date=now,
                project_id=plot.project_id,
                user_id=buyer_id,
                payment_reference=payment_reference,
                created_by=created_by
            )

        await log_event(
            db,
            action=AuditAction.INSTALLMENT_PLAN_CREATED,
            actor_id=created_by,
            entity_type="InstallmentPlan",
            entity_id=plan.id,
            metadata={
                "total_amount": str(total_amount),
                "down_payment": str(down_payment),
                "installments": len(plan.installments),
            }
        )
        return plan

    @staticmethod
    async def create_plan(
        db: AsyncSession,
        buyer_id: int,
        plot_id: int,
        total_amount,
        down_payment,
        installments: Sequence[dict],
        frequency=PlanFrequency.MONTHLY,
        start_date: Optional[datetime] = None,
        created_by: Optional[int] = None
    ) -> InstallmentPlan:
        """Create a stand-alone plan for an existing plot (down payment still due)."""
        async with unit_of_work(db, lock_key("plot", plot_id)):
            plot = await db.get(Plot, plot_id)
            if not plot:
                raise NotFoundError("Plot", plot_id)
            plan = await InstallmentService.build_plan(
                db,
                buyer_id=buyer_id,
                plot=plot,
                total_amount=total_amount,
                down_payment=down_payment,
                installments=installments,
                frequency=frequency,
                start_date=start_date,
                created_by=created_by
            )
        return plan

    @staticmethod
    async def get_plan(db: AsyncSession, plan_id: int) -> InstallmentPlan:
        plan = await db.get(InstallmentPlan, plan_id)
        if not plan:
            raise NotFoundError("Installment plan", plan_id)
        return plan

    @staticmethod
    async def list_plans(
        db: AsyncSession,
        buyer_id: Optional[int] = None,
        plot_id: Optional[int] = None,
        status=None
    ) -> List[InstallmentPlan]:
        query = select(InstallmentPlan)
        if buyer_id is not None:
            query = query.where(InstallmentPlan.buyer_id == buyer_id)
        if plot_id is not None:
            query = query.where(InstallmentPlan.plot_id == plot_id)
        if status is not None:
            query = query.where(InstallmentPlan.status == coerce_enum(PlanStatus, status, "status"))
        result = await db.execute(query.order_by(InstallmentPlan.id.desc()))
        return result.scalars().all()

    @staticmethod
    async def pay_installment(
        db: AsyncSession,
        plan_id: int,
        installment_no: int,
        amount,
        paid_date: Optional[datetime] = None,
        payment_reference: Optional[str] = None,
        payment_method=PaymentMethod.BANK_TRANSFER,
        processed_by: Optional[int] = None
    ) -> InstallmentPlan:
        """
        Record payment of one installment.

        Marks it paid (PARTIAL when under the scheduled amount), re-derives
        the plan and posts a buyer credit.

        Raises:
            NotFoundError: No such plan or installment number
            InvalidStateError: Plan is not ACTIVE
            AlreadyPaidError: Installment was paid before
        """
        amount = positive_money(amount)
        async with unit_of_work(db, lock_key("installment_plan", plan_id)):
            plan = await get_for_update(db, InstallmentPlan, plan_id, "Installment plan")
            _require_active(plan, "pay an installment")

            installment = next(
                (i for i in plan.installments if i.installment_no == installment_no), None
            )
            if installment is None:
                raise NotFoundError("Installment", installment_no)
            if installment.paid:
                raise AlreadyPaidError(
                    f"Installment #{installment_no} of plan {plan_id} is already paid",
                    details={"plan_id": plan_id, "installment_no": installment_no}
                )

            paid_date = as_naive_utc(paid_date) or datetime.utcnow()
            installment.paid = True
            installment.paid_amount = amount
            installment.paid_date = paid_date
            installment.payment_reference = payment_reference
            installment.status = (
                InstallmentStatus.PAID if amount >= money(installment.amount) else InstallmentStatus.PARTIAL
            )
            state = apply_state(plan)

            await LedgerService.post(
                db,
                entry_type=LedgerEntryType.CREDIT,
                account=LedgerAccount.BUYER,
                category=LedgerCategory.INSTALLMENT,
                amount=amount,
                ref_id=plan.id,
                ref_type=LedgerRefType.INSTALLMENT_PLAN,
                description=f"Installment #{installment_no} payment for plan {plan.id}",
                date=paid_date,
                project_id=plan.project_id,
                user_id=plan.buyer_id,
                payment_method=payment_method,
                payment_reference=payment_reference,
                created_by=processed_by
            )
            await log_event(
                db,
                action=AuditAction.INSTALLMENT_PAID,
                actor_id=processed_by,
                entity_type="InstallmentPlan",
                entity_id=plan.id,
                metadata={
                    "installment_no": installment_no,
                    "amount": str(amount),
                    "status": installment.status.value,
                }
            )
            if state.status == PlanStatus.COMPLETED:
                await log_event(
                    db,
                    action=AuditAction.INSTALLMENT_PLAN_COMPLETED,
                    actor_id=processed_by,
                    entity_type="InstallmentPlan",
                    entity_id=plan.id
                )

        logger.info(
            "Installment paid",
            extra={"plan_id": plan.id, "installment_no": installment_no, "plan_status": plan.status.value}
        )
        return plan

    @staticmethod
    async def pay_down_payment(
        db: AsyncSession,
        plan_id: int,
        amount=None,
        payment_reference: Optional[str] = None,
        processed_by: Optional[int] = None
    ) -> InstallmentPlan:
        """
        Record the down payment (defaults to the agreed down payment).

        Raises:
            NotFoundError: No such plan
            InvalidStateError: Plan is not ACTIVE
            AlreadyPaidError: Down payment was paid before
        """
        async with unit_of_work(db, lock_key("installment_plan", plan_id)):
            plan = await get_for_update(db, InstallmentPlan, plan_id, "Installment plan")
            _require_active(plan, "pay the down payment")
            if plan.down_payment_paid:
                raise AlreadyPaidError(
                    f"Down payment of plan {plan_id} is already paid",
                    details={"plan_id": plan_id}
                )

            amount = positive_money(plan.down_payment if amount is None else amount)
            now = datetime.utcnow()
            plan.down_payment = amount
            plan.down_payment_paid = True
            plan.down_payment_date = now
            state = apply_state(plan, now)

            await LedgerService.post(
                db,
                entry_type=LedgerEntryType.CREDIT,
                account=LedgerAccount.BUYER,
                category=LedgerCategory.INSTALLMENT,
                amount=amount,
                ref_id=plan.id,
                ref_type=LedgerRefType.INSTALLMENT_PLAN,
                description=f"Down payment for plan {plan.id}",
                date=now,
                project_id=plan.project_id,
                user_id=plan.buyer_id,
                payment_reference=payment_reference,
                created_by=processed_by
            )
            await log_event(
                db,
                action=AuditAction.DOWN_PAYMENT_PAID,
                actor_id=processed_by,
                entity_type="InstallmentPlan",
                entity_id=plan.id,
                metadata={"amount": str(amount)}
            )
            if state.status == PlanStatus.COMPLETED:
                await log_event(
                    db,
                    action=AuditAction.INSTALLMENT_PLAN_COMPLETED,
                    actor_id=processed_by,
                    entity_type="InstallmentPlan",
                    entity_id=plan.id
                )
        return plan

    @staticmethod
    async def _close(db: AsyncSession, plan_id: int, status: PlanStatus, action: str, actor_id: Optional[int]):
        async with unit_of_work(db, lock_key("installment_plan", plan_id)):
            plan = await get_for_update(db, InstallmentPlan, plan_id, "Installment plan")
            _require_active(plan, f"mark as {status.value}")
            plan.status = status
            apply_state(plan)
            await log_event(
                db,
                action=action,
                actor_id=actor_id,
                entity_type="InstallmentPlan",
                entity_id=plan.id,
                metadata={"remaining_amount": str(plan.remaining_amount)}
            )
        return plan

    @staticmethod
    async def cancel(db: AsyncSession, plan_id: int, actor_id: Optional[int] = None) -> InstallmentPlan:
        return await InstallmentService._close(
            db, plan_id, PlanStatus.CANCELLED, AuditAction.INSTALLMENT_PLAN_CANCELLED, actor_id
        )

    @staticmethod
    async def mark_defaulted(db: AsyncSession, plan_id: int, actor_id: Optional[int] = None) -> InstallmentPlan:
        return await InstallmentService._close(
            db, plan_id, PlanStatus.DEFAULTED, AuditAction.INSTALLMENT_PLAN_DEFAULTED, actor_id
        )

    @staticmethod
    async def overdue_installments(db: AsyncSession, now: Optional[datetime] = None) -> List[OverdueInstallment]:
        """Unpaid installments past due on active plans, most overdue first."""
        now = as_naive_utc(now) or datetime.utcnow()
        result = await db.execute(
            select(InstallmentPlan).where(InstallmentPlan.status == PlanStatus.ACTIVE)
        )
        overdue = []
        for plan in result.scalars().all():
            for installment in plan.installments:
                if is_overdue(installment, now):
                    overdue.append(OverdueInstallment(
                        plan_id=plan.id,
                        buyer_id=plan.buyer_id,
                        plot_id=plan.plot_id,
                        installment_no=installment.installment_no,
                        due_date=installment.due_date,
                        amount=money(installment.amount),
                        days_overdue=days_overdue(installment.due_date, now),
                    ))
        overdue.sort(key=lambda item: (-item.days_overdue, item.plan_id, item.installment_no))
        return overdue
