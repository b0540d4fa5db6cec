import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, extract, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.models.plan import Plan, BILLING_CYCLE_MONTHS
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.discount import DiscountUsage
from app.models.usage_record import UsageRecord
from app.services.exceptions import ValidationError
from app.utils.dates import month_start, shift_months, trailing_months

logger = logging.getLogger(__name__)


def _check_limit(limit: int):
    if limit < 1:
        raise ValidationError("limit must be a positive integer")


def _plan_ranking_key(row: Dict[str, Any]):
    # Count desc, then name in code-point order regardless of database collation
    return (-row["subscriptionCount"], row["planName"], row["planId"])


class AggregationService:
    """
    Read-only reporting over users, subscriptions, plans, discounts and usage.
    Nothing here writes or caches; every call hits the database.
    """

    @staticmethod
    async def overview(db: AsyncSession) -> Dict[str, int]:
        total_users_stmt = select(func.count()).select_from(User)
        active_subs_stmt = select(func.count()).select_from(Subscription).where(
            Subscription.status == SubscriptionStatus.active.value
        )
        total_subs_stmt = select(func.count()).select_from(Subscription)
        total_plans_stmt = select(func.count()).select_from(Plan)

        return {
            "totalUsers": (await db.execute(total_users_stmt)).scalar() or 0,
            "activeSubscriptions": (await db.execute(active_subs_stmt)).scalar() or 0,
            "totalSubscriptions": (await db.execute(total_subs_stmt)).scalar() or 0,
            "totalPlans": (await db.execute(total_plans_stmt)).scalar() or 0,
        }

    @staticmethod
    async def revenue_stats(db: AsyncSession) -> Dict[str, float]:
        """Monthly-equivalent revenue of active subscriptions (yearly / 12, quarterly / 3)."""
        stmt = (
            select(
                Plan.billing_cycle.label("billing_cycle"),
                func.sum(Plan.price).label("total_price")
            )
            .select_from(Subscription)
            .join(Plan, Plan.id == Subscription.plan_id)
            .where(Subscription.status == SubscriptionStatus.active.value)
            .group_by(Plan.billing_cycle)
        )
        rows = (await db.execute(stmt)).fetchall()

        total = sum(
            float(row.total_price or 0) / BILLING_CYCLE_MONTHS.get(row.billing_cycle, 1)
            for row in rows
        )
        return {"totalMonthlyRevenue": round(total, 2)}

    @staticmethod
    async def subscription_status_breakdown(db: AsyncSession) -> Dict[str, int]:
        stmt = (
            select(Subscription.status, func.count(Subscription.id).label("count"))
            .group_by(Subscription.status)
        )
        counts = {row.status: row.count for row in (await db.execute(stmt)).fetchall()}

        return {status.value: counts.get(status.value, 0) for status in SubscriptionStatus}

    @staticmethod
    async def monthly_trends(
        db: AsyncSession,
        window_months: int = 12,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """
        New subscriptions and their plan revenue per calendar month.

        Always returns exactly `window_months` entries, oldest first, ending
        with the current month. Months without subscriptions are included
        with count 0 and revenue 0.0, so callers never fill gaps themselves.
        """
        if window_months < 1:
            raise ValidationError("window_months must be a positive integer")

        now = now or datetime.utcnow()
        months = trailing_months(now, window_months)
        window_start = datetime(months[0][0], months[0][1], 1)
        window_end = shift_months(month_start(now), 1)

        year_col = extract("year", Subscription.created_at)
        month_col = extract("month", Subscription.created_at)
        stmt = (
            select(
                year_col.label("year"),
                month_col.label("month"),
                func.count(Subscription.id).label("count"),
                func.coalesce(func.sum(Plan.price), 0).label("revenue")
            )
            .select_from(Subscription)
            .outerjoin(Plan, Plan.id == Subscription.plan_id)
            .where(
                Subscription.created_at >= window_start,
                Subscription.created_at < window_end
            )
            .group_by(year_col, month_col)
        )
        rows = (await db.execute(stmt)).fetchall()
        buckets = {(int(row.year), int(row.month)): row for row in rows}

        trends = []
        for year, month in months:
            row = buckets.get((year, month))
            trends.append({
                "year": year,
                "month": month,
                "count": row.count if row else 0,
                "revenue": round(float(row.revenue or 0), 2) if row else 0.0,
            })
        return trends

    @staticmethod
    async def _plan_rows(db: AsyncSession, *filters, by_year: bool = False) -> List[Any]:
        columns = [
            Plan.id.label("plan_id"),
            Plan.name.label("plan_name"),
            Plan.product_type.label("plan_type"),
            Plan.price.label("plan_price"),
            func.count(Subscription.id).label("subscription_count"),
            func.count(func.distinct(Subscription.user_id)).label("unique_subscribers"),
        ]
        group_by = [Plan.id, Plan.name, Plan.product_type, Plan.price]
        if by_year:
            year_col = extract("year", Subscription.created_at)
            columns.insert(0, year_col.label("year"))
            group_by.insert(0, year_col)

        stmt = (
            select(*columns)
            .select_from(Subscription)
            .join(Plan, Plan.id == Subscription.plan_id)
            .where(*filters)
            .group_by(*group_by)
        )
        return (await db.execute(stmt)).fetchall()

    @staticmethod
    def _rank(rows: List[Any], limit: int, with_subscribers: bool) -> List[Dict[str, Any]]:
        ranked = []
        for row in rows:
            entry = {
                "planId": row.plan_id,
                "planName": row.plan_name,
                "planType": row.plan_type,
                "planPrice": float(row.plan_price or 0),
                "subscriptionCount": row.subscription_count,
            }
            if with_subscribers:
                entry["uniqueSubscribers"] = row.unique_subscribers
            ranked.append(entry)
        ranked.sort(key=_plan_ranking_key)
        return ranked[:limit]

    @staticmethod
    async def top_plans(db: AsyncSession, limit: int = 5) -> List[Dict[str, Any]]:
        """All-time ranking by subscription count; ties go to the smaller plan name."""
        _check_limit(limit)
        rows = await AggregationService._plan_rows(db)
        return AggregationService._rank(rows, limit, with_subscribers=False)

    @staticmethod
    async def top_plans_by_year(db: AsyncSession, limit: int = 5) -> Dict[int, List[Dict[str, Any]]]:
        """One ranking per year that has subscriptions, newest year first."""
        _check_limit(limit)
        rows = await AggregationService._plan_rows(db, by_year=True)

        grouped: Dict[int, List[Any]] = {}
        for row in rows:
            grouped.setdefault(int(row.year), []).append(row)

        return {
            year: AggregationService._rank(grouped[year], limit, with_subscribers=True)
            for year in sorted(grouped, reverse=True)
        }

    @staticmethod
    async def top_plans_current(
        db: AsyncSession,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        _check_limit(limit)
        now = now or datetime.utcnow()
        start_of_month = month_start(now)
        start_of_year = start_of_month.replace(month=1)

        month_rows = await AggregationService._plan_rows(
            db,
            Subscription.created_at >= start_of_month,
            Subscription.created_at < shift_months(start_of_month, 1),
        )
        year_rows = await AggregationService._plan_rows(
            db,
            Subscription.created_at >= start_of_year,
            Subscription.created_at < start_of_year.replace(year=start_of_year.year + 1),
        )
        return {
            "month": AggregationService._rank(month_rows, limit, with_subscribers=True),
            "year": AggregationService._rank(year_rows, limit, with_subscribers=True),
        }

    @staticmethod
    async def discount_usage(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
        _check_limit(limit)
        stmt = (
            select(DiscountUsage, User.username, User.email)
            .outerjoin(User, User.id == DiscountUsage.user_id)
            .order_by(DiscountUsage.applied_at.desc(), DiscountUsage.id.desc())
            .limit(limit)
        )
        rows = (await db.execute(stmt)).all()

        return [
            {
                "id": usage.id,
                "code": usage.code,
                "user": {"id": usage.user_id, "username": username, "email": email} if username else None,
                "amountBefore": float(usage.amount_before or 0),
                "discountAmount": float(usage.discount_amount or 0),
                "amountAfter": float(usage.amount_after or 0),
                "appliedAt": usage.applied_at.isoformat() if usage.applied_at else None,
            }
            for usage, username, email in rows
        ]

    @staticmethod
    async def usage_summary_for_user(db: AsyncSession, user_id: int, limit: int = 30) -> Dict[str, Any]:
        """
        Latest usage rows plus a summary of the user's whole history.

        averageDailyUsage divides by the number of distinct days that have a
        record, not by the calendar span between the first and last record.
        """
        _check_limit(limit)
        history_stmt = (
            select(UsageRecord)
            .where(UsageRecord.user_id == user_id)
            .order_by(UsageRecord.date.desc(), UsageRecord.id.desc())
            .limit(limit)
        )
        history = (await db.execute(history_stmt)).scalars().all()

        summary_stmt = select(
            func.sum(UsageRecord.data_used).label("total_data_used"),
            func.count(func.distinct(UsageRecord.date)).label("days_present"),
            func.max(UsageRecord.data_used).label("peak_usage"),
            func.avg(UsageRecord.average_speed).label("average_speed")
        ).where(UsageRecord.user_id == user_id)
        summary = (await db.execute(summary_stmt)).fetchone()

        total_data_used = float(summary.total_data_used or 0)
        days_present = summary.days_present or 0

        return {
            "usageHistory": [record.to_dict() for record in history],
            "summary": {
                "totalDataUsed": round(total_data_used, 2),
                "averageDailyUsage": round(total_data_used / days_present, 2) if days_present else 0.0,
                "peakUsage": float(summary.peak_usage or 0),
                "averageSpeed": round(float(summary.average_speed or 0), 2),
            },
        }

    @staticmethod
    async def monthly_usage(
        db: AsyncSession,
        user_id: int,
        window_months: int = 12,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Data used per month for one user, zero-filled the same way as monthly_trends."""
        if window_months < 1:
            raise ValidationError("window_months must be a positive integer")

        now = now or datetime.utcnow()
        months = trailing_months(now, window_months)
        window_start = datetime(months[0][0], months[0][1], 1).date()
        window_end = shift_months(month_start(now), 1).date()

        year_col = extract("year", UsageRecord.date)
        month_col = extract("month", UsageRecord.date)
        stmt = (
            select(
                year_col.label("year"),
                month_col.label("month"),
                func.sum(UsageRecord.data_used).label("data_used")
            )
            .where(
                UsageRecord.user_id == user_id,
                UsageRecord.date >= window_start,
                UsageRecord.date < window_end
            )
            .group_by(year_col, month_col)
        )
        rows = (await db.execute(stmt)).fetchall()
        totals = {(int(row.year), int(row.month)): float(row.data_used or 0) for row in rows}

        return [
            {"year": year, "month": month, "dataUsed": round(totals.get((year, month), 0.0), 2)}
            for year, month in months
        ]

    @staticmethod
    async def recent_users(db: AsyncSession, limit: int = 5) -> List[Dict[str, Any]]:
        stmt = select(User).order_by(desc(User.created_at), desc(User.id)).limit(limit)
        users = (await db.execute(stmt)).scalars().all()
        return [user.to_dict() for user in users]

    @staticmethod
    async def recent_subscriptions(db: AsyncSession, limit: int = 5) -> List[Dict[str, Any]]:
        stmt = (
            select(Subscription, Plan, User)
            .outerjoin(Plan, Plan.id == Subscription.plan_id)
            .join(User, User.id == Subscription.user_id)
            .order_by(desc(Subscription.created_at), desc(Subscription.id))
            .limit(limit)
        )
        rows = (await db.execute(stmt)).all()
        return [subscription.to_dict(plan=plan, user=user) for subscription, plan, user in rows]

    @staticmethod
    async def dashboard(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Everything the admin dashboard renders, in one payload."""
        return {
            "overview": await AggregationService.overview(db),
            "topPlans": await AggregationService.top_plans(db),
            "monthlyTrends": await AggregationService.monthly_trends(db, now=now),
            "recentUsers": await AggregationService.recent_users(db),
            "recentSubscriptions": await AggregationService.recent_subscriptions(db),
            "revenueStats": await AggregationService.revenue_stats(db),
            "subscriptionStatusBreakdown": await AggregationService.subscription_status_breakdown(db),
        }
