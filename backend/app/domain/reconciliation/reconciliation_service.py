"""
Reconciliation Service (Domain Logic).

Bank accounts, statement import and matching of statement lines to
ledger entries. A statement line and a ledger entry are each matched at
most once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import ValidationError, NotFoundError, AlreadyReconciledError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, ZERO
from backend.app.domain.ledger.ledger_service import RECONCILIATION_LOCK, coerce_enum, mark_reconciled
from backend.app.domain.reconciliation.matcher import match, rank_candidates
from backend.app.models.bank_account import BankAccount, BankTransaction
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.finance_enums import LedgerEntryType
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.entity_locks import unit_of_work, lock_key, get_for_update

logger = logging.getLogger("plotledger.reconciliation")


@dataclass
class MatchResult:
    transaction: BankTransaction
    ledger_entry: LedgerEntry


def _find_transaction(account: BankAccount, transaction_id: int) -> BankTransaction:
    transaction = next((t for t in account.transactions if t.id == transaction_id), None)
    if transaction is None:
        raise NotFoundError("Bank transaction", transaction_id)
    return transaction


def _apply_match(account: BankAccount, transaction: BankTransaction, entry: LedgerEntry, now: datetime) -> None:
    if transaction.matched:
        raise AlreadyReconciledError(
            f"Bank transaction {transaction.id} is already matched",
            details={"transaction_id": transaction.id, "matched_to": transaction.matched_to}
        )
    mark_reconciled(entry, now)
    entry.bank_account_id = account.id
    transaction.matched = True
    transaction.matched_to = entry.id
    transaction.matched_at = now
    transaction.category = entry.category.value


def parse_statement_row(row: dict, fallback_balance):
    """Turn one parsed statement row into BankTransaction fields."""
    if row.get("date") is None:
        raise ValidationError("Statement row has no date", details={"row": {k: str(v) for k, v in row.items()}})
    raw_amount = money(row.get("amount"), "amount")
    explicit_type = row.get("transaction_type")
    if explicit_type is not None:
        transaction_type = coerce_enum(LedgerEntryType, explicit_type, "transaction type")
    else:
        transaction_type = LedgerEntryType.CREDIT if raw_amount >= 0 else LedgerEntryType.DEBIT
    balance = row.get("balance")
    return dict(
        date=as_naive_utc(row["date"]),
        description=(row.get("description") or "")[:255],
        amount=abs(raw_amount),
        transaction_type=transaction_type,
        balance=money(balance, "balance") if balance is not None else fallback_balance,
        reference=row.get("reference"),
        category=row.get("category"),
        matched=False,
    )


class ReconciliationService:

    @staticmethod
    async def create_account(
        db: AsyncSession,
        name: str,
        bank: str,
        account_no: str,
        opening_balance=0,
        currency: str = "PKR",
        opening_date: Optional[datetime] = None,
        actor_id: Optional[int] = None
    ) -> BankAccount:
        """
        Raises:
            ValidationError: account_no already registered
        """
        opening_balance = money(opening_balance or 0, "opening_balance")
        async with unit_of_work(db):
            existing = await db.execute(select(BankAccount).where(BankAccount.account_no == account_no))
            if existing.scalar_one_or_none():
                raise ValidationError(
                    f"Bank account {account_no} already exists",
                    details={"account_no": account_no}
                )
            account = BankAccount(
                name=name,
                bank=bank,
                account_no=account_no,
                currency=currency,
                balance=opening_balance,
                opening_balance=opening_balance,
                opening_date=as_naive_utc(opening_date) or datetime.utcnow(),
                is_active=True,
                transactions=[]
            )
            db.add(account)
            await db.flush()
            await log_event(
                db,
                action=AuditAction.BANK_ACCOUNT_CREATED,
                actor_id=actor_id,
                entity_type="BankAccount",
                entity_id=account.id,
                metadata={"account_no": account_no, "opening_balance": str(opening_balance)}
            )
        return account

    @staticmethod
    async def get_account(db: AsyncSession, account_id: int) -> BankAccount:
        account = await db.get(BankAccount, account_id)
        if not account:
            raise NotFoundError("Bank account", account_id)
        return account

    @staticmethod
    async def import_statement(
        db: AsyncSession,
        account_id: int,
        rows: Sequence[dict],
        actor_id: Optional[int] = None
    ) -> List[BankTransaction]:
        """
        Append already-parsed statement rows to an account.

        A negative amount is a debit; stored amounts are absolute. The
        account balance follows the last row.
        """
        async with unit_of_work(db, lock_key("bank_account", account_id)):
            account = await get_for_update(db, BankAccount, account_id, "Bank account")
            added = []
            balance = account.balance
            for row in rows:
                transaction = BankTransaction(**parse_statement_row(row, balance))
                balance = transaction.balance
                account.transactions.append(transaction)
                added.append(transaction)
            if added:
                account.balance = balance
            await db.flush()
            await log_event(
                db,
                action=AuditAction.BANK_STATEMENT_IMPORTED,
                actor_id=actor_id,
                entity_type="BankAccount",
                entity_id=account.id,
                metadata={"rows": len(added), "balance": str(account.balance)}
            )
        logger.info("Bank statement imported", extra={"bank_account_id": account_id, "rows": len(added)})
        return added

    @staticmethod
    async def confirm_match(
        db: AsyncSession,
        account_id: int,
        transaction_id: int,
        ledger_entry_id: int,
        actor_id: Optional[int] = None
    ) -> MatchResult:
        """
        Manually pair a statement line with a ledger entry.

        Raises:
            NotFoundError: Unknown account, transaction or ledger entry
            AlreadyReconciledError: Either side was matched before
        """
        async with unit_of_work(db, RECONCILIATION_LOCK, lock_key("bank_account", account_id)):
            account = await get_for_update(db, BankAccount, account_id, "Bank account")
            transaction = _find_transaction(account, transaction_id)
            entry = await get_for_update(db, LedgerEntry, ledger_entry_id, "Ledger entry")
            _apply_match(account, transaction, entry, datetime.utcnow())
            await log_event(
                db,
                action=AuditAction.BANK_TRANSACTION_MATCHED,
                actor_id=actor_id,
                entity_type="BankTransaction",
                entity_id=transaction.id,
                metadata={"ledger_entry_id": entry.id, "mode": "manual"}
            )
        return MatchResult(transaction=transaction, ledger_entry=entry)

    @staticmethod
    async def auto_reconcile(
        db: AsyncSession,
        account_id: int,
        actor_id: Optional[int] = None
    ) -> List[MatchResult]:
        """
        Run the matcher over every unmatched line of an account.

        Candidates are unreconciled ledger entries ranked by date distance
        then id; an entry claimed earlier in the run is not offered again.
        """
        async with unit_of_work(db, RECONCILIATION_LOCK, lock_key("bank_account", account_id)):
            account = await get_for_update(db, BankAccount, account_id, "Bank account")
            result = await db.execute(
                select(LedgerEntry)
                .where(LedgerEntry.reconciled == False)
                .order_by(LedgerEntry.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            available = {entry.id: entry for entry in result.scalars().all()}

            now = datetime.utcnow()
            matches = []
            for transaction in sorted(account.transactions, key=lambda t: (as_naive_utc(t.date), t.id)):
                if transaction.matched:
                    continue
                entry = match(transaction, rank_candidates(transaction, available.values()))
                if entry is None:
                    continue
                _apply_match(account, transaction, entry, now)
                del available[entry.id]
                matches.append(MatchResult(transaction=transaction, ledger_entry=entry))
                await log_event(
                    db,
                    action=AuditAction.BANK_TRANSACTION_MATCHED,
                    actor_id=actor_id,
                    entity_type="BankTransaction",
                    entity_id=transaction.id,
                    metadata={"ledger_entry_id": entry.id, "mode": "auto"}
                )
        logger.info(
            "Auto reconciliation finished",
            extra={"bank_account_id": account_id, "matched": len(matches)}
        )
        return matches

    @staticmethod
    async def unmatched(db: AsyncSession, account_id: int) -> List[BankTransaction]:
        account = await ReconciliationService.get_account(db, account_id)
        return [t for t in account.transactions if not t.matched]

    @staticmethod
    def unmatched_total(transactions: Sequence[BankTransaction]):
        return sum((money(t.amount) for t in transactions), ZERO)
