from datetime import datetime, date

import pytest
from sqlalchemy import select, func

from app.models.user import User
from app.services.account_service import AccountService
from app.services.aggregation_service import AggregationService
from app.services.exceptions import ValidationError, NotFoundError
from app.services.notification_service import NotificationService


class TestProfile:

    @pytest.mark.asyncio
    async def test_profile_includes_newest_active_subscription(self, db, make_user, make_plan, make_subscription):
        user = await make_user(username="erin")
        basic = await make_plan("Basic")
        premium = await make_plan("Premium")
        await make_subscription(user, basic, "active", datetime(2026, 1, 1))
        await make_subscription(user, premium, "active", datetime(2026, 2, 1))
        await make_subscription(user, basic, "cancelled", datetime(2026, 3, 1))

        profile = await AccountService.get_profile(db, user.id)

        assert profile["username"] == "erin"
        assert profile["currentSubscription"]["plan"]["name"] == "Premium"

    @pytest.mark.asyncio
    async def test_profile_without_subscription(self, db, make_user):
        user = await make_user()

        profile = await AccountService.get_profile(db, user.id)

        assert profile["currentSubscription"] is None

    @pytest.mark.asyncio
    async def test_missing_user(self, db):
        with pytest.raises(NotFoundError):
            await AccountService.get_profile(db, 404)

    @pytest.mark.asyncio
    async def test_update_profile(self, db, make_user):
        user = await make_user()

        updated = await AccountService.update_profile(db, user.id, username="  frank ", email="frank@example.com")

        assert updated["username"] == "frank"
        assert updated["email"] == "frank@example.com"

    @pytest.mark.asyncio
    async def test_update_profile_rejects_blank_username(self, db, make_user):
        user = await make_user()

        with pytest.raises(ValidationError):
            await AccountService.update_profile(db, user.id, username="   ")

    @pytest.mark.asyncio
    async def test_update_profile_rejects_taken_email(self, db, make_user):
        await make_user(email="taken@example.com")
        user = await make_user()

        with pytest.raises(ValidationError) as exc_info:
            await AccountService.update_profile(db, user.id, email="taken@example.com")
        assert exc_info.value.message == "Email already in use"


class TestHistoryAndStats:

    @pytest.mark.asyncio
    async def test_subscription_history_newest_first(self, db, make_user, make_plan, make_subscription):
        user = await make_user()
        other = await make_user()
        plan = await make_plan("Basic")
        await make_subscription(user, plan, "expired", datetime(2025, 6, 1))
        await make_subscription(user, plan, "active", datetime(2026, 1, 1))
        await make_subscription(other, plan, "active", datetime(2026, 2, 1))

        history = await AccountService.subscription_history(db, user.id)

        assert [s["status"] for s in history] == ["active", "expired"]
        assert "user" not in history[0]

    @pytest.mark.asyncio
    async def test_user_stats(self, db, make_user, make_plan, make_subscription, make_usage):
        user = await make_user()
        plan = await make_plan("Basic")
        await make_subscription(user, plan, "expired", datetime(2025, 6, 1))
        await make_subscription(user, plan, "active", datetime(2026, 1, 1))
        await make_usage(user, date(2026, 2, 1), 1.25)
        await make_usage(user, date(2026, 2, 2), 2.5)
        await NotificationService.send_to_users(db, [user.id], "One")
        await NotificationService.send_to_users(db, [user.id], "Two")
        await NotificationService.mark_all_read(db, user.id)
        await NotificationService.send_to_users(db, [user.id], "Three")

        stats = await AccountService.user_stats(db, user.id)

        assert stats["totalSubscriptions"] == 2
        assert stats["activeSubscription"]["status"] == "active"
        assert stats["unreadNotifications"] == 1
        assert stats["totalDataUsed"] == 3.75


class TestUserManagement:

    @pytest.mark.asyncio
    async def test_list_users_paginates(self, db, make_user):
        for _ in range(5):
            await make_user()

        result = await AccountService.list_users(db, page=2, limit=2)

        # Newest first: user5, user4 | user3, user2 | user1
        assert [u["username"] for u in result["users"]] == ["user3", "user2"]
        assert result["pagination"] == {"current": 2, "pages": 3, "total": 5, "limit": 2}

    @pytest.mark.asyncio
    async def test_list_users_search_and_current_plan(self, db, make_user, make_plan, make_subscription):
        grace = await make_user(username="grace", email="grace@example.com")
        await make_user(username="heidi", email="heidi@example.com")
        plan = await make_plan("Premium")
        await make_subscription(grace, plan, "active")

        result = await AccountService.list_users(db, search="GRA")

        (listed,) = result["users"]
        assert listed["username"] == "grace"
        assert listed["currentPlan"]["name"] == "Premium"
        assert result["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_list_users_sort_by_username(self, db, make_user):
        await make_user(username="bob")
        await make_user(username="alice")

        result = await AccountService.list_users(db, sort_by="username", sort_order="asc")

        assert [u["username"] for u in result["users"]] == ["alice", "bob"]
        assert result["users"][0]["currentPlan"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"page": 0},
        {"limit": 0},
        {"sort_by": "password"},
        {"sort_order": "sideways"},
    ])
    async def test_list_users_rejects_bad_arguments(self, db, kwargs):
        with pytest.raises(ValidationError):
            await AccountService.list_users(db, **kwargs)

    @pytest.mark.asyncio
    async def test_toggle_user_status(self, db, make_user):
        user = await make_user()

        assert (await AccountService.toggle_user_status(db, user.id))["isActive"] is False
        assert (await AccountService.toggle_user_status(db, user.id))["isActive"] is True

    @pytest.mark.asyncio
    async def test_toggle_missing_user(self, db):
        with pytest.raises(NotFoundError):
            await AccountService.toggle_user_status(db, 404)


class TestDiscounts:

    @pytest.mark.asyncio
    async def test_list_discounts_filters_and_sorts(self, db, make_discount):
        await make_discount(code="LATE", end_date=datetime(2026, 12, 31))
        await make_discount(code="SOON", end_date=datetime(2026, 6, 30))
        await make_discount(code="OFF", is_active=False, end_date=datetime(2026, 1, 31))

        active = await AccountService.list_discounts(db, is_active=True)
        everything = await AccountService.list_discounts(db, sort_by="code")

        assert [d["code"] for d in active] == ["SOON", "LATE"]
        assert [d["code"] for d in everything] == ["LATE", "OFF", "SOON"]

    @pytest.mark.asyncio
    async def test_get_missing_discount(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            await AccountService.get_discount(db, 404)
        assert exc_info.value.message == "Discount not found"


class TestDeleteAccount:

    @pytest.mark.asyncio
    async def test_removes_personal_data_and_detaches_discount_usage(
        self, db, make_user, make_plan, make_subscription, make_usage, make_discount_usage
    ):
        user = await make_user()
        other = await make_user()
        user_id = user.id
        plan = await make_plan("Basic")
        await make_subscription(user, plan, "active")
        await make_subscription(other, plan, "active")
        await make_usage(user, date(2026, 2, 1), 2)
        await make_discount_usage(user, "SAVE10", 100, 10, datetime(2026, 1, 1))
        await NotificationService.send_to_users(db, [user.id, other.id], "Hello")

        removed = await AccountService.delete_account(db, user_id)

        assert removed == {"subscriptions": 1, "notifications": 1, "usageRecords": 1}
        assert (await db.execute(select(func.count(User.id)))).scalar() == 1
        assert await AccountService.subscription_history(db, user_id) == []
        assert (await NotificationService.list_for_user(db, user_id))["notifications"] == []
        assert (await NotificationService.list_for_user(db, other.id))["unreadCount"] == 1
        assert (await AccountService.subscription_history(db, other.id))[0]["status"] == "active"

        (usage,) = await AggregationService.discount_usage(db)
        assert usage["code"] == "SAVE10"
        assert usage["user"] is None

    @pytest.mark.asyncio
    async def test_missing_user(self, db):
        with pytest.raises(NotFoundError):
            await AccountService.delete_account(db, 404)
