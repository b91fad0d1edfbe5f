"""
Commission database model.

Agent payout created once per qualifying plot sale.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import CommissionStatus


class Commission(Base):
    """
    Commission model.

    Follows a forward-only approval workflow: PENDING -> APPROVED -> PAID,
    with CANCELLED reachable before payment. There is no un-approve.
    """
    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plot_id = Column(Integer, ForeignKey("plots.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    rule_id = Column(Integer, ForeignKey("commission_rules.id"), nullable=True)

    # Financials
    amount = Column(Numeric(14, 2), nullable=False)  # Payable (may be adjusted on approval)
    calculated_amount = Column(Numeric(14, 2), nullable=False)  # As resolved from the rule

    # Status
    status = Column(Enum(CommissionStatus), default=CommissionStatus.PENDING, nullable=False, index=True)

    # Approval Flow
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    # Payment Flow
    payment_date = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(100), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Commission(id={self.id}, status='{self.status.value}', amount={self.amount})>"
