from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, EmailStr
from typing import Optional

from app.api.deps import get_db, get_current_user
from app.models.user import User
from app.services.account_service import AccountService

router = APIRouter()

class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None

@router.get("/profile")
async def get_user_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await AccountService.get_profile(db, current_user.id)

@router.put("/profile")
async def update_user_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await AccountService.update_profile(
        db, current_user.id, username=payload.username, email=payload.email
    )

@router.get("/subscription-history")
async def get_user_subscription_history(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return {"subscriptions": await AccountService.subscription_history(db, current_user.id)}

@router.get("/stats")
async def get_user_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await AccountService.user_stats(db, current_user.id)

@router.delete("/account")
async def delete_user_account(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Permanently delete the current user's account and personal data"""
    removed = await AccountService.delete_account(db, current_user.id)
    return {"success": True, "removed": removed}
