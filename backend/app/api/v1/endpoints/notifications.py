"""
Notification API Endpoints.

In-app messages produced by the sale workflow (booking confirmations,
pending commissions).
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.db.session import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.services.notification_service import NotificationService
from backend.app.schemas.notification import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    user_id: int = Query(...),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    """List a user's notifications, newest first."""
    return await NotificationService.list_for_user(db, user_id, unread_only=unread_only, limit=limit)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int = Path(...),
    user_id: int = Query(...),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    notif = await NotificationService.mark_read(db, notification_id, user_id)
    if notif is None:
        raise NotFoundError("Notification", notification_id)

    await db.commit()
    await db.refresh(notif)
    return notif
