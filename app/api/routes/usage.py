from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_current_user
from app.config import settings
from app.models.user import User
from app.services.aggregation_service import AggregationService

router = APIRouter()

@router.get("/usage-history")
async def get_user_usage_history(
    limit: int = Query(30, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    usage = await AggregationService.usage_summary_for_user(db, current_user.id, limit)
    return {
        "usageHistory": usage["usageHistory"],
        "usageSummary": usage["summary"],
        "monthlyUsage": await AggregationService.monthly_usage(db, current_user.id),
    }
