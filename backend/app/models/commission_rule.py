"""
Commission Rule database model.

Maps a plot size range to an agent commission rate.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import CommissionRuleType


class CommissionRule(Base):
    """
    Commission Rule model.

    project_id NULL means the rule applies to every project. Ranges may
    overlap; the resolver picks by priority, not by best fit.
    Rules are admin-managed and never mutated by the sale flow.
    """
    __tablename__ = "commission_rules"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)

    # Plot size range in marla, inclusive on both ends
    min_size = Column(Numeric(8, 2), default=0, nullable=False)
    max_size = Column(Numeric(8, 2), nullable=True)  # NULL = unbounded

    rule_type = Column(Enum(CommissionRuleType), nullable=False)
    value = Column(Numeric(14, 2), nullable=False)

    active = Column(Boolean, default=True, nullable=False, index=True)
    priority = Column(Integer, default=0, nullable=False)  # Higher is checked first
    description = Column(String(255), nullable=True)

    # Validity window; the resolver ignores rules outside it
    effective_from = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    effective_to = Column(DateTime(timezone=True), nullable=True)

    # Audit
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<CommissionRule(id={self.id}, type='{self.rule_type.value}', value={self.value}, priority={self.priority})>"
