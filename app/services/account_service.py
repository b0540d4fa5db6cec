import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, and_, or_, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.models.plan import Plan
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.notification import Notification
from app.models.discount import Discount, DiscountUsage
from app.models.usage_record import UsageRecord
from app.services.exceptions import ValidationError, NotFoundError

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = {
    "created_at": User.created_at,
    "createdAt": User.created_at,
    "username": User.username,
    "email": User.email,
}

DISCOUNT_SORT_FIELDS = {
    "end_date": Discount.end_date,
    "endDate": Discount.end_date,
    "created_at": Discount.created_at,
    "createdAt": Discount.created_at,
    "code": Discount.code,
    "name": Discount.name,
}


def _order(column, sort_order: str):
    if sort_order not in ("asc", "desc"):
        raise ValidationError(f"Invalid sort order '{sort_order}'")
    return column.asc() if sort_order == "asc" else column.desc()


class AccountService:
    """Profile, history and user-management operations around the core services."""

    @staticmethod
    async def _get_user(db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: int) -> Dict[str, Any]:
        user = await AccountService._get_user(db, user_id)
        profile = user.to_dict()
        profile["currentSubscription"] = await AccountService.current_subscription(db, user_id)
        return profile

    @staticmethod
    async def update_profile(
        db: AsyncSession,
        user_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        user = await AccountService._get_user(db, user_id)

        if username is not None:
            username = username.strip()
            if not username:
                raise ValidationError("Username cannot be empty")
            user.username = username

        if email is not None and email != user.email:
            stmt = select(User.id).where(and_(User.email == email, User.id != user_id))
            if (await db.execute(stmt)).scalar_one_or_none() is not None:
                raise ValidationError("Email already in use")
            user.email = email

        await db.commit()
        logger.info(f"Updated profile for user {user_id}")
        return user.to_dict()

    @staticmethod
    async def current_subscription(db: AsyncSession, user_id: int) -> Optional[Dict[str, Any]]:
        """The user's newest active subscription; older active rows are ignored."""
        stmt = (
            select(Subscription, Plan)
            .outerjoin(Plan, Plan.id == Subscription.plan_id)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.active.value
            )
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        row = (await db.execute(stmt)).first()
        if not row:
            return None
        subscription, plan = row
        return subscription.to_dict(plan=plan)

    @staticmethod
    async def subscription_history(db: AsyncSession, user_id: int) -> List[Dict[str, Any]]:
        stmt = (
            select(Subscription, Plan)
            .outerjoin(Plan, Plan.id == Subscription.plan_id)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        rows = (await db.execute(stmt)).all()
        return [subscription.to_dict(plan=plan) for subscription, plan in rows]

    @staticmethod
    async def user_stats(db: AsyncSession, user_id: int) -> Dict[str, Any]:
        total_subs_stmt = select(func.count(Subscription.id)).where(Subscription.user_id == user_id)
        unread_stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read == False
        )
        data_used_stmt = select(func.sum(UsageRecord.data_used)).where(UsageRecord.user_id == user_id)

        return {
            "totalSubscriptions": (await db.execute(total_subs_stmt)).scalar() or 0,
            "activeSubscription": await AccountService.current_subscription(db, user_id),
            "unreadNotifications": (await db.execute(unread_stmt)).scalar() or 0,
            "totalDataUsed": round(float((await db.execute(data_used_stmt)).scalar() or 0), 2),
        }

    @staticmethod
    async def list_users(
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        """
        Paginated user list, each user carrying their current plan
        (`null` when they have no active subscription).
        """
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")
        if sort_by not in USER_SORT_FIELDS:
            raise ValidationError(f"Cannot sort users by '{sort_by}'")
        order = _order(USER_SORT_FIELDS[sort_by], sort_order)

        filters = []
        if search:
            search_term = f"%{search.lower()}%"
            filters.append(or_(User.username.ilike(search_term), User.email.ilike(search_term)))

        total = (await db.execute(select(func.count(User.id)).where(*filters))).scalar() or 0

        stmt = (
            select(User)
            .where(*filters)
            .order_by(order, User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        users = (await db.execute(stmt)).scalars().all()

        plans_by_user: Dict[int, Dict[str, Any]] = {}
        if users:
            plans_stmt = (
                select(Subscription.user_id, Plan)
                .join(Plan, Plan.id == Subscription.plan_id)
                .where(
                    Subscription.user_id.in_([u.id for u in users]),
                    Subscription.status == SubscriptionStatus.active.value
                )
                .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            )
            for user_id, plan in (await db.execute(plans_stmt)).all():
                # First row per user is the newest active subscription
                plans_by_user.setdefault(user_id, plan.to_dict())

        return {
            "users": [
                {**user.to_dict(), "currentPlan": plans_by_user.get(user.id)}
                for user in users
            ],
            "pagination": {
                "current": page,
                "pages": math.ceil(total / limit),
                "total": total,
                "limit": limit,
            },
        }

    @staticmethod
    async def toggle_user_status(db: AsyncSession, user_id: int) -> Dict[str, Any]:
        user = await AccountService._get_user(db, user_id)
        user.is_active = not user.is_active
        await db.commit()
        logger.info(f"User {user_id} is now {'active' if user.is_active else 'inactive'}")
        return user.to_dict()

    @staticmethod
    async def delete_account(db: AsyncSession, user_id: int) -> Dict[str, int]:
        """
        Remove a user together with their subscriptions, notifications and
        usage records. Discount usage rows stay for reporting with the user
        detached, so they show up with `user: null`.
        """
        user = await AccountService._get_user(db, user_id)

        removed = {}
        for name, model in (
            ("subscriptions", Subscription),
            ("notifications", Notification),
            ("usageRecords", UsageRecord),
        ):
            result = await db.execute(delete(model).where(model.user_id == user_id))
            removed[name] = result.rowcount or 0

        await db.execute(
            update(DiscountUsage).where(DiscountUsage.user_id == user_id).values(user_id=None)
        )
        await db.delete(user)
        await db.commit()

        logger.info(f"Deleted account {user_id}: {removed}")
        return removed

    @staticmethod
    async def get_discount(db: AsyncSession, discount_id: int) -> Discount:
        discount = await db.get(Discount, discount_id)
        if not discount:
            raise NotFoundError("Discount not found")
        return discount

    @staticmethod
    async def list_discounts(
        db: AsyncSession,
        is_active: Optional[bool] = None,
        sort_by: str = "end_date",
        sort_order: str = "asc",
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        if sort_by not in DISCOUNT_SORT_FIELDS:
            raise ValidationError(f"Cannot sort discounts by '{sort_by}'")
        if limit < 1:
            raise ValidationError("limit must be a positive integer")

        stmt = select(Discount)
        if is_active is not None:
            stmt = stmt.where(Discount.is_active == is_active)
        stmt = stmt.order_by(_order(DISCOUNT_SORT_FIELDS[sort_by], sort_order), Discount.id).limit(limit)

        discounts = (await db.execute(stmt)).scalars().all()
        return [discount.to_dict() for discount in discounts]
