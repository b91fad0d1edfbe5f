"""
Notification Database Model.

In-app messages produced after financial events: a buyer's booking
confirmation and an agent's pending commission.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    SALE_UPDATE = "SALE_UPDATE"
    COMMISSION_UPDATE = "COMMISSION_UPDATE"
    PAYMENT_REMINDER = "PAYMENT_REMINDER"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Plot the message is about, when there is one
    plot_id = Column(Integer, ForeignKey("plots.id"), nullable=True, index=True)

    type = Column(Enum(NotificationType), default=NotificationType.INFO, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_payload = Column(JSON, nullable=True)

    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type}, plot={self.plot_id})>"
