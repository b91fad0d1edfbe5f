"""
Seller Payment database model.

Amount owed to a plot's seller after a sale. status is derived from
paid_amount against amount after every payment.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.finance_enums import SellerPaymentStatus, PaymentMode


class SellerPayment(Base):
    __tablename__ = "seller_payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plot_id = Column(Integer, ForeignKey("plots.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)

    amount = Column(Numeric(14, 2), nullable=False)
    payout_percent = Column(Numeric(5, 2), nullable=False)  # Share of sale price applied at sale time
    paid_amount = Column(Numeric(14, 2), default=0, nullable=False)
    mode = Column(Enum(PaymentMode), default=PaymentMode.FULL, nullable=False)

    status = Column(Enum(SellerPaymentStatus), default=SellerPaymentStatus.PENDING, nullable=False, index=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<SellerPayment(id={self.id}, status='{self.status.value}', paid={self.paid_amount}/{self.amount})>"
