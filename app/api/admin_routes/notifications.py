from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from app.api.deps import get_db
from app.services.account_service import AccountService
from app.services.notification_service import NotificationService

router = APIRouter()

class NotificationData(BaseModel):
    offer: Optional[Dict[str, Any]] = None

class NotificationSendBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    type: Optional[str] = None
    data: Optional[NotificationData] = None
    # Alternative to data.offer: snapshot a stored discount by id
    offer_id: Optional[int] = Field(None, alias="offerId")

class SendToUsersRequest(NotificationSendBase):
    user_ids: List[int] = Field(..., alias="userIds")

class SendToRoleRequest(NotificationSendBase):
    role: str

async def _resolve_offer(db: AsyncSession, payload: NotificationSendBase):
    if payload.offer_id is not None:
        return await AccountService.get_discount(db, payload.offer_id)
    if payload.data and payload.data.offer is not None:
        return payload.data.offer
    return None

@router.post("/notifications")
async def send_notification_to_users(payload: SendToUsersRequest, db: AsyncSession = Depends(get_db)):
    """Send one notification to each listed user"""
    offer = await _resolve_offer(db, payload)
    created_count = await NotificationService.send_to_users(
        db, payload.user_ids, payload.message, payload.type, offer
    )
    return {"createdCount": created_count}

@router.post("/notifications/role")
async def send_notification_to_role(payload: SendToRoleRequest, db: AsyncSession = Depends(get_db)):
    """Send one notification to every active user with the given role"""
    offer = await _resolve_offer(db, payload)
    created_count = await NotificationService.send_to_role(
        db, payload.role, payload.message, payload.type, offer
    )
    return {"createdCount": created_count}
