"""
Bank Account database models.

Company bank accounts and the statement lines imported for reconciliation.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import LedgerEntryType


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    bank = Column(String(150), nullable=False)
    account_no = Column(String(50), unique=True, index=True, nullable=False)
    currency = Column(String(3), default="PKR", nullable=False)

    balance = Column(Numeric(14, 2), default=0, nullable=False)
    opening_balance = Column(Numeric(14, 2), default=0, nullable=False)
    opening_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    transactions = relationship(
        "BankTransaction",
        back_populates="bank_account",
        order_by="BankTransaction.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<BankAccount(id={self.id}, account_no='{self.account_no}', balance={self.balance})>"


class BankTransaction(Base):
    """
    Imported statement line.

    `matched` flips to True exactly once, pointing at a ledger entry.
    """
    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False, index=True)

    date = Column(DateTime(timezone=True), nullable=False)
    description = Column(String(255), nullable=False, default="")
    amount = Column(Numeric(14, 2), nullable=False)  # Absolute value
    transaction_type = Column(Enum(LedgerEntryType), nullable=False)
    balance = Column(Numeric(14, 2), nullable=True)
    reference = Column(String(100), nullable=True)
    category = Column(String(50), nullable=True)

    matched = Column(Boolean, default=False, nullable=False, index=True)
    matched_to = Column(Integer, ForeignKey("ledger_entries.id"), nullable=True)
    matched_at = Column(DateTime(timezone=True), nullable=True)

    bank_account = relationship("BankAccount", back_populates="transactions")

    def __repr__(self):
        return f"<BankTransaction(id={self.id}, amount={self.amount}, matched={self.matched})>"
