"""
Audit Log Database Model.

Tracks every state-changing financial action for compliance review.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - SALE_PROCESSED
    - LEDGER_ENTRY_POSTED / LEDGER_ENTRY_RECONCILED
    - COMMISSION_* / INSTALLMENT_* / PARTNER_* / BANK_* / SELLER_PAYMENT_*
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which record was affected
    entity_type = Column(String(50), nullable=True, index=True)
    entity_id = Column(Integer, nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
