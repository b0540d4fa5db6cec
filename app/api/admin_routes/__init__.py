from fastapi import APIRouter, Depends
from .dashboard import router as dashboard_router
from .notifications import router as notifications_router
from .users import router as users_router
from .discounts import router as discounts_router
from app.api.deps import get_current_admin

router = APIRouter()

# Protected admin router
protected_admin_api = APIRouter(dependencies=[Depends(get_current_admin)])
protected_admin_api.include_router(dashboard_router, tags=["Admin Dashboard"])
protected_admin_api.include_router(notifications_router, tags=["Admin Notifications"])
protected_admin_api.include_router(users_router, tags=["Admin Users"])
protected_admin_api.include_router(discounts_router, tags=["Admin Discounts"])

router.include_router(protected_admin_api, prefix="/admin")
