"""
Installment Plan database models.

A buyer's payment schedule for a plot. total_paid, remaining_amount,
next_due_date and status are derived columns: they are rewritten from the
schedule after every mutation and never set directly by callers.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import PlanStatus, PlanFrequency, InstallmentStatus


class InstallmentPlan(Base):
    __tablename__ = "installment_plans"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plot_id = Column(Integer, ForeignKey("plots.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)

    # Terms
    total_amount = Column(Numeric(14, 2), nullable=False)
    down_payment = Column(Numeric(14, 2), default=0, nullable=False)
    down_payment_paid = Column(Boolean, default=False, nullable=False)
    down_payment_date = Column(DateTime(timezone=True), nullable=True)
    frequency = Column(Enum(PlanFrequency), default=PlanFrequency.MONTHLY, nullable=False)
    start_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    # Derived
    status = Column(Enum(PlanStatus), default=PlanStatus.ACTIVE, nullable=False, index=True)
    total_paid = Column(Numeric(14, 2), default=0, nullable=False)
    remaining_amount = Column(Numeric(14, 2), nullable=False)
    next_due_date = Column(DateTime(timezone=True), nullable=True, index=True)

    installments = relationship(
        "Installment",
        back_populates="plan",
        order_by="Installment.installment_no",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<InstallmentPlan(id={self.id}, status='{self.status.value}', remaining={self.remaining_amount})>"


class Installment(Base):
    """One scheduled payment. Numbered 1..N in the order given at creation."""
    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("plan_id", "installment_no", name="uq_installment_plan_no"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    plan_id = Column(Integer, ForeignKey("installment_plans.id"), nullable=False, index=True)
    installment_no = Column(Integer, nullable=False)

    due_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    paid = Column(Boolean, default=False, nullable=False)
    paid_amount = Column(Numeric(14, 2), default=0, nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(100), nullable=True)
    status = Column(Enum(InstallmentStatus), default=InstallmentStatus.PENDING, nullable=False)
    late_fee = Column(Numeric(14, 2), default=0, nullable=False)

    plan = relationship("InstallmentPlan", back_populates="installments")

    def __repr__(self):
        return f"<Installment(plan={self.plan_id}, no={self.installment_no}, paid={self.paid})>"
