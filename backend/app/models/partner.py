"""
Partner database models.

Capital partners, their capital movements and their profit distributions.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import PartnerStatus, CapitalTransactionType, DistributionStatus


class Partner(Base):
    """
    Partner model.

    Share percentages across non-terminated partners must never sum above 100;
    checked whenever a share or status changes.
    """
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)

    share_percent = Column(Numeric(5, 2), nullable=False)
    investment_amount = Column(Numeric(14, 2), default=0, nullable=False)

    # Running totals
    capital_injected = Column(Numeric(14, 2), default=0, nullable=False)
    withdrawals = Column(Numeric(14, 2), default=0, nullable=False)
    profit_credited = Column(Numeric(14, 2), default=0, nullable=False)

    status = Column(Enum(PartnerStatus), default=PartnerStatus.ACTIVE, nullable=False, index=True)
    join_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    capital_transactions = relationship(
        "CapitalTransaction",
        back_populates="partner",
        order_by="CapitalTransaction.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    profit_distributions = relationship(
        "ProfitDistribution",
        back_populates="partner",
        order_by="ProfitDistribution.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def current_capital(self):
        return self.capital_injected - self.withdrawals

    @property
    def pending_profit(self):
        return sum(
            (d.amount for d in self.profit_distributions if d.status == DistributionStatus.PENDING),
            0
        )

    def __repr__(self):
        return f"<Partner(id={self.id}, name='{self.name}', share={self.share_percent})>"


class CapitalTransaction(Base):
    __tablename__ = "partner_capital_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    transaction_type = Column(Enum(CapitalTransactionType), nullable=False)
    date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    reference = Column(String(100), nullable=True)
    notes = Column(String(255), nullable=True)

    partner = relationship("Partner", back_populates="capital_transactions")


class ProfitDistribution(Base):
    __tablename__ = "partner_profit_distributions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)

    amount = Column(Numeric(14, 2), nullable=False)
    share_percent = Column(Numeric(5, 2), nullable=False)
    period_start = Column(DateTime(timezone=True), nullable=True)
    period_end = Column(DateTime(timezone=True), nullable=True)

    status = Column(Enum(DistributionStatus), default=DistributionStatus.PENDING, nullable=False, index=True)
    payment_reference = Column(String(100), nullable=True)
    distributed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    partner = relationship("Partner", back_populates="profit_distributions")
