from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.api.deps import get_db, get_current_admin
from app.models.user import User
from app.services.account_service import AccountService
from app.services.exceptions import ValidationError

router = APIRouter()

@router.get("/users")
async def get_all_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by username or email"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db)
):
    """
    Fetches users with their current plan.
    This is an admin-only endpoint.
    """
    return await AccountService.list_users(
        db, page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order
    )

@router.patch("/users/{user_id}/toggle-status")
async def toggle_user_status(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    if user_id == current_admin.id:
        raise ValidationError("You cannot deactivate your own account")
    return {"user": await AccountService.toggle_user_status(db, user_id)}
