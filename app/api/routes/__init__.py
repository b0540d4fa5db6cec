from fastapi import APIRouter, Depends
from .auth import router as auth_router
from .users import router as users_router
from .notifications import router as notifications_router
from .usage import router as usage_router
from app.api.deps import get_current_user, get_current_regular_user

router = APIRouter()

# Public auth routes
router.include_router(auth_router, tags=["Authentication"])

# Notifications are open to any signed-in role
protected_user_api = APIRouter(dependencies=[Depends(get_current_user)])
protected_user_api.include_router(notifications_router, tags=["User Notifications"])

# Profile, history, usage and account routes are for the user role only
user_only_api = APIRouter(dependencies=[Depends(get_current_regular_user)])
user_only_api.include_router(users_router, tags=["User"])
user_only_api.include_router(usage_router, tags=["User Usage"])
protected_user_api.include_router(user_only_api)

router.include_router(protected_user_api, prefix="/user")
