"""
Ledger Entry database model.

Append-mostly record of every money movement in the back office.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, Boolean, Index
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import (
    LedgerEntryType, LedgerAccount, LedgerCategory, LedgerRefType, PaymentMethod
)


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Immutable fact tied to a source record through (ref_type, ref_id).
    Amount is always non-negative; entry_type carries the direction.
    Only `reconciled`, `reconciled_at` and `bank_account_id` are ever written
    after creation. Running balances are folded on read, never stored.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_ref", "ref_type", "ref_id"),
        Index("ix_ledger_entries_account_date", "account", "date"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Entry details
    entry_type = Column(Enum(LedgerEntryType), nullable=False)  # DEBIT or CREDIT
    account = Column(Enum(LedgerAccount), nullable=False)
    category = Column(Enum(LedgerCategory), nullable=False, index=True)

    # Financials
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(String(255), nullable=False)

    # Linkage
    ref_id = Column(Integer, nullable=True)  # NULL only for free-standing TRANSACTION postings
    ref_type = Column(Enum(LedgerRefType), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=True, index=True)

    # Payment metadata
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_reference = Column(String(100), nullable=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)

    # Reconciliation
    reconciled = Column(Boolean, default=False, nullable=False, index=True)
    reconciled_at = Column(DateTime(timezone=True), nullable=True)

    # Effective date of the movement (fold order is date, then id)
    date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, type='{self.entry_type.value}', "
            f"account='{self.account.value}', amount={self.amount})>"
        )
