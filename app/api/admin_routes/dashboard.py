from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.api.deps import get_db
from app.services.aggregation_service import AggregationService

router = APIRouter()

@router.get("/dashboard")
async def get_admin_dashboard(db: AsyncSession = Depends(get_db)):
    return await AggregationService.dashboard(db)

@router.get("/analytics/top-plans")
async def get_top_plans(
    by: Optional[str] = Query(None, description="'year' for per-year rankings, 'current' for this month and year"),
    limit: int = Query(5, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    if by is None:
        return {"topPlans": await AggregationService.top_plans(db, limit)}

    if by == "year":
        by_year = await AggregationService.top_plans_by_year(db, limit)
        return {
            "years": list(by_year.keys()),
            "byYear": {str(year): rows for year, rows in by_year.items()},
        }

    if by == "current":
        return await AggregationService.top_plans_current(db, limit)

    raise HTTPException(status_code=400, detail="by must be 'year' or 'current'")

@router.get("/discount-usage")
async def get_discount_usage(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    return {"usage": await AggregationService.discount_usage(db, limit)}
