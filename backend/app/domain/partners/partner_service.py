"""
Partner Service (Domain Logic).

Partner capital movements, profit distributions and the share invariant.
Any operation that can change the share total holds the shared
"partner_shares" lock so two concurrent checks never both pass.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import (
    ValidationError, NotFoundError, InvalidStateError, InsufficientCapitalError
)
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import non_negative_money, positive_money, percent_of, to_decimal, HUNDRED
from backend.app.domain.ledger.ledger_service import LedgerService, coerce_enum
from backend.app.domain.partners.share_invariant import validate_share_invariant, counted_share_total
from backend.app.models.partner import Partner, CapitalTransaction, ProfitDistribution
from backend.app.models.finance_enums import (
    PartnerStatus, CapitalTransactionType, DistributionStatus,
    LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType, PaymentMethod
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.partners")

SHARES_LOCK = lock_key("partner_shares", 0)

# Times distribute_profit_to_all re-reads the active set if it changes before locking
PARTNER_SET_ATTEMPTS = 3


@dataclass
class DistributionLine:
    partner_id: int
    distribution_id: int
    share_percent: Decimal
    amount: Decimal


async def _all_partners(db: AsyncSession) -> List[Partner]:
    result = await db.execute(select(Partner))
    return result.scalars().all()


async def _active_partner_ids(db: AsyncSession) -> List[int]:
    result = await db.execute(
        select(Partner.id).where(Partner.status == PartnerStatus.ACTIVE).order_by(Partner.id)
    )
    return list(result.scalars().all())


async def _apply_capital(
    db: AsyncSession,
    partner: Partner,
    amount: Decimal,
    transaction_type: CapitalTransactionType,
    reference: Optional[str],
    notes: Optional[str],
    actor_id: Optional[int]
) -> CapitalTransaction:
    if transaction_type == CapitalTransactionType.WITHDRAWAL:
        available = partner.current_capital
        if available < amount:
            raise InsufficientCapitalError(available=available, requested=amount)
        partner.withdrawals = partner.withdrawals + amount
        entry_type, category = LedgerEntryType.DEBIT, LedgerCategory.CAPITAL_WITHDRAWAL
        action, label = AuditAction.CAPITAL_WITHDRAWN, "Capital withdrawal"
    else:
        partner.capital_injected = partner.capital_injected + amount
        entry_type, category = LedgerEntryType.CREDIT, LedgerCategory.CAPITAL_INJECTION
        action, label = AuditAction.CAPITAL_INJECTED, "Capital injection"

    now = datetime.utcnow()
    transaction = CapitalTransaction(
        amount=amount,
        transaction_type=transaction_type,
        date=now,
        reference=reference,
        notes=notes
    )
    partner.capital_transactions.append(transaction)
    await db.flush()

    await LedgerService.post(
        db,
        entry_type=entry_type,
        account=LedgerAccount.PARTNER,
        category=category,
        amount=amount,
        ref_id=partner.id,
        ref_type=LedgerRefType.PARTNER,
        description=f"{label} - {partner.name}",
        date=now,
        partner_id=partner.id,
        payment_method=PaymentMethod.BANK_TRANSFER,
        payment_reference=reference,
        created_by=actor_id
    )
    await log_event(
        db,
        action=action,
        actor_id=actor_id,
        entity_type="Partner",
        entity_id=partner.id,
        metadata={"amount": str(amount), "capital_transaction_id": transaction.id}
    )
    return transaction


async def _record_distribution(
    db: AsyncSession,
    partner: Partner,
    total_amount: Decimal,
    share_percent: Decimal,
    project_id: Optional[int],
    period_start: Optional[datetime],
    period_end: Optional[datetime],
    actor_id: Optional[int]
) -> ProfitDistribution:
    amount = percent_of(total_amount, share_percent)
    distribution = ProfitDistribution(
        project_id=project_id,
        amount=amount,
        share_percent=share_percent,
        period_start=as_naive_utc(period_start),
        period_end=as_naive_utc(period_end),
        status=DistributionStatus.PENDING
    )
    partner.profit_distributions.append(distribution)
    partner.profit_credited = partner.profit_credited + amount
    await db.flush()

    await LedgerService.post(
        db,
        entry_type=LedgerEntryType.DEBIT,
        account=LedgerAccount.PARTNER,
        category=LedgerCategory.PARTNER_PROFIT,
        amount=amount,
        ref_id=partner.id,
        ref_type=LedgerRefType.PARTNER,
        description=f"Profit distribution for {partner.name} - {share_percent}%",
        project_id=project_id,
        partner_id=partner.id,
        created_by=actor_id
    )
    await log_event(
        db,
        action=AuditAction.PROFIT_DISTRIBUTED,
        actor_id=actor_id,
        entity_type="Partner",
        entity_id=partner.id,
        metadata={
            "distribution_id": distribution.id,
            "amount": str(amount),
            "share_percent": str(share_percent),
        }
    )
    return distribution


class PartnerService:

    @staticmethod
    async def get_partner(db: AsyncSession, partner_id: int) -> Partner:
        partner = await db.get(Partner, partner_id)
        if not partner:
            raise NotFoundError("Partner", partner_id)
        return partner

    @staticmethod
    async def list_partners(db: AsyncSession, status=None) -> List[Partner]:
        query = select(Partner)
        if status is not None:
            query = query.where(Partner.status == coerce_enum(PartnerStatus, status, "status"))
        result = await db.execute(query.order_by(Partner.id))
        return result.scalars().all()

    @staticmethod
    async def create_partner(
        db: AsyncSession,
        name: str,
        email: str,
        share_percent,
        phone: Optional[str] = None,
        investment_amount=0,
        actor_id: Optional[int] = None
    ) -> Partner:
        """
        Register a partner; the initial investment is booked as a capital injection.

        Raises:
            ValidationError: Duplicate email or share outside [0, 100]
            ShareOverflowError: Shares would exceed 100
        """
        investment = non_negative_money(investment_amount or 0, "investment_amount")
        async with unit_of_work(db, SHARES_LOCK):
            existing = await db.execute(select(Partner).where(Partner.email == email))
            if existing.scalar_one_or_none():
                raise ValidationError(f"Partner with email {email} already exists", details={"email": email})

            share = to_decimal(share_percent, "share_percent")
            validate_share_invariant(await _all_partners(db), share)

            partner = Partner(
                name=name,
                email=email,
                phone=phone,
                share_percent=share,
                investment_amount=investment,
                capital_injected=non_negative_money(0),
                withdrawals=non_negative_money(0),
                profit_credited=non_negative_money(0),
                status=PartnerStatus.ACTIVE,
                join_date=datetime.utcnow(),
                capital_transactions=[],
                profit_distributions=[]
            )
            db.add(partner)
            await db.flush()

            if investment > 0:
                await _apply_capital(
                    db, partner, investment, CapitalTransactionType.INJECTION,
                    reference=None, notes="Initial investment", actor_id=actor_id
                )
            await log_event(
                db,
                action=AuditAction.PARTNER_CREATED,
                actor_id=actor_id,
                entity_type="Partner",
                entity_id=partner.id,
                metadata={"share_percent": str(share), "investment_amount": str(investment)}
            )
        logger.info("Partner created", extra={"partner_id": partner.id, "share_percent": str(share)})
        return partner

    @staticmethod
    async def update_partner(
        db: AsyncSession,
        partner_id: int,
        share_percent=None,
        status=None,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> Partner:
        """
        Update share, status or contact details.

        The invariant is checked against every other partner whenever the
        resulting partner still counts (not TERMINATED).
        """
        async with unit_of_work(db, SHARES_LOCK, lock_key("partner", partner_id)):
            partner = await get_for_update(db, Partner, partner_id, "Partner")
            new_status = coerce_enum(PartnerStatus, status, "status") if status is not None else partner.status
            new_share = to_decimal(share_percent, "share_percent") if share_percent is not None else partner.share_percent

            if new_status != PartnerStatus.TERMINATED:
                validate_share_invariant(await _all_partners(db), new_share, exclude_partner_id=partner.id)

            changes = {}
            if new_share != partner.share_percent:
                changes["share_percent"] = [str(partner.share_percent), str(new_share)]
                partner.share_percent = new_share
            if new_status != partner.status:
                changes["status"] = [partner.status.value, new_status.value]
                partner.status = new_status
            if name is not None:
                partner.name = name
            if phone is not None:
                partner.phone = phone

            await log_event(
                db,
                action=AuditAction.PARTNER_UPDATED,
                actor_id=actor_id,
                entity_type="Partner",
                entity_id=partner.id,
                metadata=changes
            )
        return partner

    @staticmethod
    async def add_capital(
        db: AsyncSession,
        partner_id: int,
        amount,
        transaction_type,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> Partner:
        """
        Record a capital injection or withdrawal.

        Raises:
            NotFoundError: No such partner
            InsufficientCapitalError: Withdrawal above current capital
        """
        amount = positive_money(amount)
        transaction_type = coerce_enum(CapitalTransactionType, transaction_type, "transaction type")
        async with unit_of_work(db, lock_key("partner", partner_id)):
            partner = await get_for_update(db, Partner, partner_id, "Partner")
            await _apply_capital(db, partner, amount, transaction_type, reference, notes, actor_id)
        return partner

    @staticmethod
    async def distribute_profit(
        db: AsyncSession,
        partner_id: int,
        total_amount,
        share_percent=None,
        project_id: Optional[int] = None,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        actor_id: Optional[int] = None
    ) -> ProfitDistribution:
        """
        Credit one partner with their share of a profit.

        share_percent defaults to the partner's current share.
        """
        total_amount = non_negative_money(total_amount, "total_amount")
        async with unit_of_work(db, lock_key("partner", partner_id)):
            partner = await get_for_update(db, Partner, partner_id, "Partner")
            share = to_decimal(share_percent if share_percent is not None else partner.share_percent, "share_percent")
            if share < 0 or share > HUNDRED:
                raise ValidationError("share_percent must be between 0 and 100", details={"share_percent": str(share)})
            distribution = await _record_distribution(
                db, partner, total_amount, share, project_id, period_start, period_end, actor_id
            )
        return distribution

    @staticmethod
    async def distribute_profit_to_all(
        db: AsyncSession,
        total_amount,
        project_id: Optional[int] = None,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        actor_id: Optional[int] = None
    ) -> List[DistributionLine]:
        """
        Split a profit across all active partners by share.

        Holds every active partner's lock as well as the share lock, so it
        serializes with single-partner capital and profit operations.

        Raises:
            ValidationError: Active shares do not sum to exactly 100
            InvalidStateError: The active partner set kept changing
        """
        total_amount = non_negative_money(total_amount, "total_amount")
        for _ in range(PARTNER_SET_ATTEMPTS):
            partner_ids = await _active_partner_ids(db)
            keys = [lock_key("partner", partner_id) for partner_id in partner_ids]
            async with unit_of_work(db, SHARES_LOCK, *keys):
                result = await db.execute(
                    select(Partner)
                    .where(Partner.status == PartnerStatus.ACTIVE)
                    .order_by(Partner.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                partners = result.scalars().all()
                if [p.id for p in partners] != partner_ids:
                    # A partner joined or left before the locks were taken
                    continue
                if not partners:
                    return []

                total_share = counted_share_total(partners)
                if total_share != HUNDRED:
                    raise ValidationError(
                        f"Total share percentage is {total_share}%, must equal 100%",
                        details={"total_share": str(total_share)}
                    )

                lines = []
                for partner in partners:
                    share = to_decimal(partner.share_percent, "share_percent")
                    distribution = await _record_distribution(
                        db, partner, total_amount, share, project_id, period_start, period_end, actor_id
                    )
                    lines.append(DistributionLine(
                        partner_id=partner.id,
                        distribution_id=distribution.id,
                        share_percent=share,
                        amount=distribution.amount
                    ))
            return lines
        raise InvalidStateError(
            "Active partners changed while distributing profit; retry",
            details={"attempts": PARTNER_SET_ATTEMPTS}
        )

    @staticmethod
    async def approve_distribution(
        db: AsyncSession,
        partner_id: int,
        distribution_id: int,
        payment_reference: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        actor_id: Optional[int] = None
    ) -> ProfitDistribution:
        """
        Pay out a pending distribution (PENDING -> PAID).

        Raises:
            NotFoundError: No such partner or distribution
            InvalidStateError: Distribution is not PENDING
        """
        async with unit_of_work(db, lock_key("partner", partner_id)):
            partner = await get_for_update(db, Partner, partner_id, "Partner")
            distribution = next((d for d in partner.profit_distributions if d.id == distribution_id), None)
            if distribution is None:
                raise NotFoundError("Profit distribution", distribution_id)
            if distribution.status != DistributionStatus.PENDING:
                raise InvalidStateError(
                    f"Distribution {distribution_id} is already {distribution.status.value}",
                    details={"status": distribution.status.value}
                )
            distribution.status = DistributionStatus.PAID
            distribution.payment_reference = payment_reference
            distribution.distributed_at = as_naive_utc(payment_date) or datetime.utcnow()
            partner.withdrawals = partner.withdrawals + distribution.amount

            await log_event(
                db,
                action=AuditAction.PROFIT_DISTRIBUTION_PAID,
                actor_id=actor_id,
                entity_type="Partner",
                entity_id=partner.id,
                metadata={"distribution_id": distribution.id, "amount": str(distribution.amount)}
            )
        return distribution
