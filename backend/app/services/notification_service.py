"""
Notification Service.

Creates in-app notifications and provides the dispatcher the sale workflow
calls after a sale commits. Dispatch is best-effort: callers bound it with
a timeout and log failures instead of propagating them.
"""

from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, desc
from typing import Optional, Dict, Any, List

from backend.app.models.notification import Notification, NotificationType


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        metadata: Optional[Dict[str, Any]] = None,
        plot_id: Optional[int] = None
    ) -> Notification:
        """Create a single notification."""
        notif = Notification(
            user_id=user_id,
            plot_id=plot_id,
            type=type,
            title=title,
            message=message,
            metadata_payload=metadata
        )
        db.add(notif)
        await db.flush() # Caller commits
        return notif

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """List a user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit)

        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> Optional[Notification]:
        """Mark a notification as read. Returns None when it is not the user's."""
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
        )
        notif = result.scalar_one_or_none()
        if notif is None:
            return None

        if not notif.is_read:
            notif.is_read = True
            notif.read_at = datetime.utcnow()
            await db.flush()
        return notif


class InAppNotificationDispatcher:
    """
    Notification collaborator for the sale workflow.

    Writes through its own session so a failed notification can never
    touch the sale's transaction.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def sale_completed(
        self,
        buyer_id: int,
        plot_id: int,
        plot_no: str,
        sale_price: str,
        agent_id: Optional[int] = None,
        commission_amount: Optional[str] = None
    ) -> None:
        async with self.session_factory() as db:
            await NotificationService.create_notification(
                db,
                user_id=buyer_id,
                title="Booking confirmed",
                message=f"Your purchase of Plot {plot_no} for {sale_price} has been recorded.",
                type=NotificationType.SALE_UPDATE,
                plot_id=plot_id,
                metadata={"sale_price": sale_price}
            )
            if agent_id is not None and commission_amount is not None:
                await NotificationService.create_notification(
                    db,
                    user_id=agent_id,
                    title="Commission pending approval",
                    message=f"A commission of {commission_amount} for Plot {plot_no} awaits approval.",
                    type=NotificationType.COMMISSION_UPDATE,
                    plot_id=plot_id,
                    metadata={"amount": commission_amount}
                )
            await db.commit()
