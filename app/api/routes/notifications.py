from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.api.deps import get_db, get_current_user
from app.config import settings
from app.models.user import User
from app.services.notification_service import NotificationService

router = APIRouter()

@router.get("/notifications")
async def get_user_notifications(
    limit: Optional[int] = Query(None, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Latest notifications for the current user plus their total unread count"""
    return await NotificationService.list_for_user(db, current_user.id, limit)

@router.patch("/notifications/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    updated_count = await NotificationService.mark_all_read(db, current_user.id)
    return {"updatedCount": updated_count}

@router.patch("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    success = await NotificationService.mark_read(db, current_user.id, notification_id)
    return {"success": success}
