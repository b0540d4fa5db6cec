from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.api.deps import get_db
from app.services.account_service import AccountService

router = APIRouter()

@router.get("/discounts")
async def get_discounts(
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort_by: str = Query("end_date", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """Discounts available to attach as offers"""
    return {
        "discounts": await AccountService.list_discounts(
            db, is_active=is_active, sort_by=sort_by, sort_order=sort_order, limit=limit
        )
    }
