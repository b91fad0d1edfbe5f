"""
Plot database model.

Inventory record. The sale workflow reads size, project, booking agent and
seller, and only ever writes status, buyer_id, sold_at and sale_price.
"""

import enum
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base


class PlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    BLOCKED = "blocked"
    DISPUTED = "disputed"


# Statuses from which a plot can be sold
SELLABLE_STATUSES = (PlotStatus.AVAILABLE, PlotStatus.RESERVED)


class Plot(Base):
    __tablename__ = "plots"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    plot_no = Column(String(50), nullable=False)
    size_marla = Column(Numeric(8, 2), nullable=False)
    block = Column(String(50), nullable=True)

    status = Column(Enum(PlotStatus), default=PlotStatus.AVAILABLE, nullable=False, index=True)
    price = Column(Numeric(14, 2), nullable=False)

    # Counterparties
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Booking (agent who brought the buyer)
    booked_by_agent_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    booking_date = Column(DateTime(timezone=True), nullable=True)
    booking_amount = Column(Numeric(14, 2), nullable=True)

    # Sale
    sold_at = Column(DateTime(timezone=True), nullable=True)
    sale_price = Column(Numeric(14, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Plot(id={self.id}, plot_no='{self.plot_no}', status='{self.status.value}')>"
