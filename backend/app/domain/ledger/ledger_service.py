"""
Ledger Service (Domain Logic).

Single writer of LedgerEntry rows. Every component that moves money posts
through LedgerService.post, which validates amount, enums and the
ref_type/account pairing before anything reaches the database.

Balances are never stored: they are folded on read in ascending
(date, id) order, credit adds and debit subtracts.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Iterable, List, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationError, AlreadyReconciledError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import non_negative_money, positive_money, ZERO
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.finance_enums import (
    LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType, PaymentMethod
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.ledger")

# Held by every operation that flips a reconciled flag
RECONCILIATION_LOCK = lock_key("reconciliation", 0)


# Which accounts a source record kind may post to
ALLOWED_REF_ACCOUNTS = {
    LedgerRefType.PLOT: {LedgerAccount.INCOME, LedgerAccount.SELLER, LedgerAccount.BUYER},
    LedgerRefType.INSTALLMENT_PLAN: {LedgerAccount.BUYER},
    LedgerRefType.COMMISSION: {LedgerAccount.AGENT_COMMISSION},
    LedgerRefType.SELLER_PAYMENT: {LedgerAccount.SELLER},
    LedgerRefType.PARTNER: {LedgerAccount.PARTNER},
    LedgerRefType.BANK_ACCOUNT: {
        LedgerAccount.BANK, LedgerAccount.CASH, LedgerAccount.EXPENSE, LedgerAccount.INCOME
    },
    LedgerRefType.TRANSACTION: {
        LedgerAccount.BANK, LedgerAccount.CASH, LedgerAccount.EXPENSE, LedgerAccount.INCOME
    },
}


def coerce_enum(enum_cls: Type, value, field_name: str):
    """Accept an enum member or its value; anything else is a ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Allowed: {allowed}",
            details={"field": field_name, "value": str(value)}
        )


def validate_pairing(ref_type: LedgerRefType, account: LedgerAccount) -> None:
    if account not in ALLOWED_REF_ACCOUNTS[ref_type]:
        raise ValidationError(
            f"Account '{account.value}' cannot be posted against ref type '{ref_type.value}'",
            details={"ref_type": ref_type.value, "account": account.value}
        )


def signed_amount(entry: LedgerEntry) -> Decimal:
    return entry.amount if entry.entry_type == LedgerEntryType.CREDIT else -entry.amount


@dataclass
class BalanceLine:
    entry: LedgerEntry
    balance: Decimal


@dataclass
class AccountLedger:
    account: LedgerAccount
    lines: List[BalanceLine] = field(default_factory=list)
    closing_balance: Decimal = ZERO


def fold_running_balance(entries: Iterable[LedgerEntry]) -> List[BalanceLine]:
    """
    Replay entries in (date, id) order and attach the running balance.

    Deterministic regardless of input order; ties on date break by id.
    """
    balance = ZERO
    lines = []
    for entry in sorted(entries, key=lambda e: (as_naive_utc(e.date), e.id)):
        balance += signed_amount(entry)
        lines.append(BalanceLine(entry=entry, balance=balance))
    return lines


LEDGER_CSV_HEADER = (
    "Date", "Type", "Account", "Category", "Description", "Reference", "Amount", "Balance", "Reconciled"
)


def render_ledger_csv(ledger: AccountLedger) -> str:
    """One CSV row per entry, oldest first, with the running balance."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LEDGER_CSV_HEADER)
    for line in ledger.lines:
        entry = line.entry
        writer.writerow([
            as_naive_utc(entry.date).date().isoformat(),
            entry.entry_type.value,
            entry.account.value,
            entry.category.value,
            entry.description,
            f"{entry.ref_type.value}:{entry.ref_id}" if entry.ref_id is not None else entry.ref_type.value,
            f"{entry.amount:.2f}",
            f"{line.balance:.2f}",
            "yes" if entry.reconciled else "no",
        ])
    return buffer.getvalue()


def mark_reconciled(entry: LedgerEntry, when: Optional[datetime] = None) -> LedgerEntry:
    """Flip the reconciliation flag once; a second attempt is an error."""
    if entry.reconciled:
        raise AlreadyReconciledError(
            f"Ledger entry {entry.id} is already reconciled",
            details={"ledger_entry_id": entry.id, "reconciled_at": str(entry.reconciled_at)}
        )
    entry.reconciled = True
    entry.reconciled_at = as_naive_utc(when) or datetime.utcnow()
    return entry


class LedgerService:

    @staticmethod
    async def post(
        db: AsyncSession,
        *,
        entry_type,
        account,
        category,
        amount,
        ref_id: Optional[int],
        ref_type,
        description: str,
        date: Optional[datetime] = None,
        project_id: Optional[int] = None,
        user_id: Optional[int] = None,
        partner_id: Optional[int] = None,
        payment_method=None,
        payment_reference: Optional[str] = None,
        bank_account_id: Optional[int] = None,
        created_by: Optional[int] = None
    ) -> LedgerEntry:
        """
        Validate and append one ledger entry.

        Flushes so the entry gets its id; the caller's unit of work commits.

        Raises:
            ValidationError: negative amount, unknown enum value or a
                ref_type/account pairing that is not allowed
        """
        entry_type = coerce_enum(LedgerEntryType, entry_type, "entry type")
        account = coerce_enum(LedgerAccount, account, "account")
        category = coerce_enum(LedgerCategory, category, "category")
        ref_type = coerce_enum(LedgerRefType, ref_type, "ref type")
        if payment_method is not None:
            payment_method = coerce_enum(PaymentMethod, payment_method, "payment method")
        validate_pairing(ref_type, account)

        # Only free-standing transactions (expenses, manual cash movements) may omit the source record
        if ref_id is None and ref_type != LedgerRefType.TRANSACTION:
            raise ValidationError("ref_id is required", details={"field": "ref_id", "ref_type": ref_type.value})
        if not description:
            raise ValidationError("description is required", details={"field": "description"})

        entry = LedgerEntry(
            entry_type=entry_type,
            account=account,
            category=category,
            amount=non_negative_money(amount),
            ref_id=ref_id,
            ref_type=ref_type,
            description=description[:255],
            date=as_naive_utc(date) or datetime.utcnow(),
            project_id=project_id,
            user_id=user_id,
            partner_id=partner_id,
            payment_method=payment_method,
            payment_reference=payment_reference,
            bank_account_id=bank_account_id,
            reconciled=False,
            created_by=created_by
        )
        db.add(entry)
        await db.flush()

        logger.info(
            "Ledger entry posted",
            extra={
                "ledger_entry_id": entry.id,
                "entry_type": entry_type.value,
                "account": account.value,
                "category": category.value,
                "amount": str(entry.amount),
                "ref": f"{ref_type.value}:{ref_id}",
            }
        )
        return entry

    @staticmethod
    async def post_entry(db: AsyncSession, actor_id: Optional[int] = None, **fields) -> LedgerEntry:
        """Post a single manually keyed entry as its own unit of work."""
        async with unit_of_work(db):
            entry = await LedgerService.post(db, created_by=actor_id, **fields)
            await log_event(
                db,
                action=AuditAction.LEDGER_ENTRY_POSTED,
                actor_id=actor_id,
                entity_type="LedgerEntry",
                entity_id=entry.id,
                metadata={"amount": str(entry.amount), "account": entry.account.value}
            )
        return entry

    @staticmethod
    async def reconcile(db: AsyncSession, entry_id: int, actor_id: Optional[int] = None) -> LedgerEntry:
        """
        Mark a ledger entry reconciled.

        Raises:
            NotFoundError: No such entry
            AlreadyReconciledError: Entry was reconciled before
        """
        async with unit_of_work(db, RECONCILIATION_LOCK):
            entry = await get_for_update(db, LedgerEntry, entry_id, "Ledger entry")
            mark_reconciled(entry)
            await log_event(
                db,
                action=AuditAction.LEDGER_ENTRY_RECONCILED,
                actor_id=actor_id,
                entity_type="LedgerEntry",
                entity_id=entry.id
            )
        return entry

    @staticmethod
    async def record_expense(
        db: AsyncSession,
        amount,
        description: str,
        project_id: Optional[int] = None,
        payment_method=None,
        created_by: Optional[int] = None
    ) -> LedgerEntry:
        """Book a general expense (debit on the expense account)."""
        amount = positive_money(amount)
        async with unit_of_work(db):
            entry = await LedgerService.post(
                db,
                entry_type=LedgerEntryType.DEBIT,
                account=LedgerAccount.EXPENSE,
                category=LedgerCategory.EXPENSE,
                amount=amount,
                ref_id=None,
                ref_type=LedgerRefType.TRANSACTION,
                description=description,
                project_id=project_id,
                payment_method=payment_method,
                created_by=created_by
            )
            await log_event(
                db,
                action=AuditAction.EXPENSE_RECORDED,
                actor_id=created_by,
                entity_type="LedgerEntry",
                entity_id=entry.id,
                metadata={"amount": str(amount)}
            )
        return entry

    @staticmethod
    def _filtered_query(
        account=None,
        category=None,
        user_id: Optional[int] = None,
        partner_id: Optional[int] = None,
        project_id: Optional[int] = None,
        reconciled: Optional[bool] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ):
        query = select(LedgerEntry)
        if account is not None:
            query = query.where(LedgerEntry.account == coerce_enum(LedgerAccount, account, "account"))
        if category is not None:
            query = query.where(LedgerEntry.category == coerce_enum(LedgerCategory, category, "category"))
        if user_id is not None:
            query = query.where(LedgerEntry.user_id == user_id)
        if partner_id is not None:
            query = query.where(LedgerEntry.partner_id == partner_id)
        if project_id is not None:
            query = query.where(LedgerEntry.project_id == project_id)
        if reconciled is not None:
            query = query.where(LedgerEntry.reconciled == reconciled)
        if start is not None:
            query = query.where(LedgerEntry.date >= as_naive_utc(start))
        if end is not None:
            query = query.where(LedgerEntry.date <= as_naive_utc(end))
        return query

    @staticmethod
    async def list_entries(db: AsyncSession, limit: int = 500, **filters) -> List[LedgerEntry]:
        """Entries matching the filters, newest first."""
        query = LedgerService._filtered_query(**filters).order_by(
            LedgerEntry.date.desc(), LedgerEntry.id.desc()
        ).limit(limit)
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def entries_for_ref(db: AsyncSession, ref_type, ref_id: int) -> List[LedgerEntry]:
        ref_type = coerce_enum(LedgerRefType, ref_type, "ref type")
        result = await db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.ref_type == ref_type, LedgerEntry.ref_id == ref_id)
            .order_by(LedgerEntry.date, LedgerEntry.id)
        )
        return result.scalars().all()

    @staticmethod
    async def account_ledger(db: AsyncSession, account, **filters) -> AccountLedger:
        """Entries of one account with their running balance, oldest first."""
        account = coerce_enum(LedgerAccount, account, "account")
        query = LedgerService._filtered_query(account=account, **filters).order_by(
            LedgerEntry.date, LedgerEntry.id
        )
        result = await db.execute(query)
        lines = fold_running_balance(result.scalars().all())
        closing = lines[-1].balance if lines else ZERO
        return AccountLedger(account=account, lines=lines, closing_balance=closing)

    @staticmethod
    async def account_balance(db: AsyncSession, account, **filters) -> Decimal:
        ledger = await LedgerService.account_ledger(db, account, **filters)
        return ledger.closing_balance
