"""
Commission Service (Domain Logic).

Owns commission rules and the agent commission lifecycle:
PENDING -> APPROVED -> PAID, or CANCELLED before payment.
"""

import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import ValidationError, InvalidStateError, NotFoundError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, non_negative_money, to_decimal, HUNDRED
from backend.app.domain.ledger.ledger_service import LedgerService, coerce_enum
from backend.app.domain.commissions.commission_resolver import CommissionResolver, CommissionResolution
from backend.app.models.commission import Commission
from backend.app.models.commission_rule import CommissionRule
from backend.app.models.plot import Plot
from backend.app.models.finance_enums import (
    CommissionRuleType, CommissionStatus, LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType,
    PaymentMethod
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.commissions")


def validate_rule_terms(rule_type: CommissionRuleType, value, min_size, max_size) -> None:
    if value < 0:
        raise ValidationError("Commission value must not be negative", details={"value": str(value)})
    if rule_type == CommissionRuleType.PERCENT and value > HUNDRED:
        raise ValidationError("Percent commission cannot exceed 100", details={"value": str(value)})
    if min_size < 0:
        raise ValidationError("min_size must not be negative", details={"min_size": str(min_size)})
    if max_size is not None and max_size < min_size:
        raise ValidationError(
            "min_size must not exceed max_size",
            details={"min_size": str(min_size), "max_size": str(max_size)}
        )


class CommissionService:

    # --- Rules ---

    @staticmethod
    async def create_rule(
        db: AsyncSession,
        rule_type,
        value,
        min_size=0,
        max_size=None,
        project_id: Optional[int] = None,
        priority: int = 0,
        description: Optional[str] = None,
        effective_from: Optional[datetime] = None,
        effective_to: Optional[datetime] = None,
        created_by: Optional[int] = None
    ) -> CommissionRule:
        rule_type = coerce_enum(CommissionRuleType, rule_type, "rule type")
        value = money(value, "value")
        min_size = to_decimal(min_size, "min_size")
        max_size = to_decimal(max_size, "max_size") if max_size is not None else None
        validate_rule_terms(rule_type, value, min_size, max_size)
        effective_from = as_naive_utc(effective_from) or datetime.utcnow()
        effective_to = as_naive_utc(effective_to)
        if effective_to is not None and effective_to < effective_from:
            raise ValidationError(
                "effective_to must not precede effective_from",
                details={"effective_from": str(effective_from), "effective_to": str(effective_to)}
            )

        async with unit_of_work(db):
            rule = CommissionRule(
                project_id=project_id,
                min_size=min_size,
                max_size=max_size,
                rule_type=rule_type,
                value=value,
                active=True,
                priority=priority,
                description=description,
                effective_from=effective_from,
                effective_to=effective_to,
                created_by=created_by
            )
            db.add(rule)
            await db.flush()
            await log_event(
                db,
                action=AuditAction.COMMISSION_RULE_CREATED,
                actor_id=created_by,
                entity_type="CommissionRule",
                entity_id=rule.id,
                metadata={"rule_type": rule_type.value, "value": str(value), "priority": priority}
            )
        return rule

    @staticmethod
    async def list_rules(
        db: AsyncSession,
        project_id: Optional[int] = None,
        active: Optional[bool] = None
    ) -> List[CommissionRule]:
        query = select(CommissionRule)
        if project_id is not None:
            query = query.where(CommissionRule.project_id == project_id)
        if active is not None:
            query = query.where(CommissionRule.active == active)
        result = await db.execute(query.order_by(CommissionRule.priority.desc(), CommissionRule.id))
        return result.scalars().all()

    @staticmethod
    async def deactivate_rule(db: AsyncSession, rule_id: int, actor_id: Optional[int] = None) -> CommissionRule:
        async with unit_of_work(db, lock_key("commission_rule", rule_id)):
            rule = await get_for_update(db, CommissionRule, rule_id, "Commission rule")
            rule.active = False
            await log_event(
                db,
                action=AuditAction.COMMISSION_RULE_DEACTIVATED,
                actor_id=actor_id,
                entity_type="CommissionRule",
                entity_id=rule.id
            )
        return rule

    # --- Commissions ---

    @staticmethod
    async def preview(db: AsyncSession, plot_id: int, sale_price) -> CommissionResolution:
        """Resolve without persisting anything."""
        return await CommissionResolver.resolve(db, plot_id, money(sale_price, "sale_price"))

    @staticmethod
    async def create_for_sale(
        db: AsyncSession,
        plot: Plot,
        agent_id: int,
        resolution: CommissionResolution,
        created_by: Optional[int] = None
    ) -> Commission:
        """
        Create a pending commission and post the payable to agent-commission.

        Flush only: runs inside the sale's unit of work.
        """
        commission = Commission(
            agent_id=agent_id,
            plot_id=plot.id,
            project_id=plot.project_id,
            rule_id=resolution.rule_id,
            amount=resolution.amount,
            calculated_amount=resolution.amount,
            status=CommissionStatus.PENDING
        )
        db.add(commission)
        await db.flush()

        await LedgerService.post(
            db,
            entry_type=LedgerEntryType.DEBIT,
            account=LedgerAccount.AGENT_COMMISSION,
            category=LedgerCategory.COMMISSION,
            amount=commission.amount,
            ref_id=commission.id,
            ref_type=LedgerRefType.COMMISSION,
            description=f"Commission for plot {plot.plot_no}",
            project_id=plot.project_id,
            user_id=agent_id,
            created_by=created_by
        )
        await log_event(
            db,
            action=AuditAction.COMMISSION_CREATED,
            actor_id=created_by,
            entity_type="Commission",
            entity_id=commission.id,
            metadata={"amount": str(commission.amount), "rule_id": resolution.rule_id, "plot_id": plot.id}
        )
        return commission

    @staticmethod
    async def approve(
        db: AsyncSession,
        commission_id: int,
        approved_by: int,
        adjusted_amount=None
    ) -> Commission:
        """
        Approve a pending commission, optionally adjusting the payable.

        An adjustment posts the difference against the accrual booked at
        sale time (debit when raised, credit when lowered), so the
        agent-commission account still nets to zero once the commission is
        paid or cancelled.

        Raises:
            NotFoundError: No such commission
            InvalidStateError: Commission is not PENDING
        """
        async with unit_of_work(db, lock_key("commission", commission_id)):
            commission = await get_for_update(db, Commission, commission_id, "Commission")
            if commission.status != CommissionStatus.PENDING:
                raise InvalidStateError(
                    f"Commission {commission_id} cannot be approved from status {commission.status.value}",
                    details={"status": commission.status.value}
                )
            if adjusted_amount is not None:
                adjusted = non_negative_money(adjusted_amount, "adjusted_amount")
                difference = adjusted - money(commission.amount)
                if difference != 0:
                    await LedgerService.post(
                        db,
                        entry_type=LedgerEntryType.DEBIT if difference > 0 else LedgerEntryType.CREDIT,
                        account=LedgerAccount.AGENT_COMMISSION,
                        category=LedgerCategory.COMMISSION,
                        amount=abs(difference),
                        ref_id=commission.id,
                        ref_type=LedgerRefType.COMMISSION,
                        description=f"Commission {commission.id} adjusted from {money(commission.amount)} to {adjusted}",
                        project_id=commission.project_id,
                        user_id=commission.agent_id,
                        created_by=approved_by
                    )
                commission.amount = adjusted
            commission.status = CommissionStatus.APPROVED
            commission.approved_by = approved_by
            commission.approved_at = datetime.utcnow()

            await log_event(
                db,
                action=AuditAction.COMMISSION_APPROVED,
                actor_id=approved_by,
                entity_type="Commission",
                entity_id=commission.id,
                metadata={"amount": str(commission.amount)}
            )
        return commission

    @staticmethod
    async def pay(
        db: AsyncSession,
        commission_id: int,
        payment_date: Optional[datetime] = None,
        payment_reference: Optional[str] = None,
        processed_by: Optional[int] = None,
        payment_method=PaymentMethod.BANK_TRANSFER
    ) -> Commission:
        """
        Pay an approved commission and settle the agent-commission payable.

        The settling credit carries its payment method; credits without one
        (cancellations, downward adjustments) are reversals of the accrual.

        Raises:
            NotFoundError: No such commission
            InvalidStateError: Commission is not APPROVED
        """
        async with unit_of_work(db, lock_key("commission", commission_id)):
            commission = await get_for_update(db, Commission, commission_id, "Commission")
            if commission.status != CommissionStatus.APPROVED:
                raise InvalidStateError(
                    f"Commission {commission_id} must be approved before payment",
                    details={"status": commission.status.value}
                )
            commission.status = CommissionStatus.PAID
            commission.payment_date = as_naive_utc(payment_date) or datetime.utcnow()
            commission.payment_reference = payment_reference

            await LedgerService.post(
                db,
                entry_type=LedgerEntryType.CREDIT,
                account=LedgerAccount.AGENT_COMMISSION,
                category=LedgerCategory.COMMISSION,
                amount=commission.amount,
                ref_id=commission.id,
                ref_type=LedgerRefType.COMMISSION,
                description=f"Commission {commission.id} paid",
                date=commission.payment_date,
                project_id=commission.project_id,
                user_id=commission.agent_id,
                payment_method=payment_method or PaymentMethod.BANK_TRANSFER,
                payment_reference=payment_reference,
                created_by=processed_by
            )
            await log_event(
                db,
                action=AuditAction.COMMISSION_PAID,
                actor_id=processed_by,
                entity_type="Commission",
                entity_id=commission.id,
                metadata={"amount": str(commission.amount), "reference": payment_reference}
            )
        logger.info(
            "Commission paid",
            extra={"commission_id": commission.id, "amount": str(commission.amount)}
        )
        return commission

    @staticmethod
    async def cancel(db: AsyncSession, commission_id: int, actor_id: Optional[int] = None) -> Commission:
        """
        Cancel an unpaid commission and reverse its payable.

        Raises:
            NotFoundError: No such commission
            InvalidStateError: Commission is PAID or already CANCELLED
        """
        async with unit_of_work(db, lock_key("commission", commission_id)):
            commission = await get_for_update(db, Commission, commission_id, "Commission")
            if commission.status not in (CommissionStatus.PENDING, CommissionStatus.APPROVED):
                raise InvalidStateError(
                    f"Commission {commission_id} cannot be cancelled from status {commission.status.value}",
                    details={"status": commission.status.value}
                )
            commission.status = CommissionStatus.CANCELLED
            commission.cancelled_at = datetime.utcnow()

            await LedgerService.post(
                db,
                entry_type=LedgerEntryType.CREDIT,
                account=LedgerAccount.AGENT_COMMISSION,
                category=LedgerCategory.COMMISSION,
                amount=commission.amount,
                ref_id=commission.id,
                ref_type=LedgerRefType.COMMISSION,
                description=f"Commission {commission.id} cancelled",
                project_id=commission.project_id,
                user_id=commission.agent_id,
                created_by=actor_id
            )
            await log_event(
                db,
                action=AuditAction.COMMISSION_CANCELLED,
                actor_id=actor_id,
                entity_type="Commission",
                entity_id=commission.id,
                metadata={"amount": str(commission.amount)}
            )
        return commission

    @staticmethod
    async def get(db: AsyncSession, commission_id: int) -> Commission:
        commission = await db.get(Commission, commission_id)
        if not commission:
            raise NotFoundError("Commission", commission_id)
        return commission

    @staticmethod
    async def list_commissions(
        db: AsyncSession,
        agent_id: Optional[int] = None,
        status=None,
        project_id: Optional[int] = None
    ) -> List[Commission]:
        query = select(Commission)
        if agent_id is not None:
            query = query.where(Commission.agent_id == agent_id)
        if status is not None:
            query = query.where(Commission.status == coerce_enum(CommissionStatus, status, "status"))
        if project_id is not None:
            query = query.where(Commission.project_id == project_id)
        result = await db.execute(query.order_by(Commission.created_at.desc(), Commission.id.desc()))
        return result.scalars().all()
