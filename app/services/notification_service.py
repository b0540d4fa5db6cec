import copy
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.services.exceptions import ValidationError, NotFoundError, StoreUnavailable

logger = logging.getLogger(__name__)

# Discount fields copied into a notification when an offer is attached
OFFER_SNAPSHOT_FIELDS = ("id", "code", "name", "type", "value")


class NotificationService:
    """
    Creates notifications and tracks their read state.

    Sends are fan-outs: one row per recipient, written in batches that are
    committed independently. A database failure part-way through keeps the
    batches already committed and raises StoreUnavailable; the caller decides
    whether to send again.
    """

    @staticmethod
    def build_offer_snapshot(source: Any) -> Dict[str, Any]:
        """
        Copy the offer fields out of a Discount row or a plain mapping.
        Anything outside OFFER_SNAPSHOT_FIELDS is dropped.
        """
        if isinstance(source, Mapping):
            values = {field: source.get(field) for field in OFFER_SNAPSHOT_FIELDS}
        else:
            values = {field: getattr(source, field, None) for field in OFFER_SNAPSHOT_FIELDS}

        if not values.get("code"):
            raise ValidationError("Attached offer must have a code")

        snapshot = {}
        for field, value in values.items():
            if value is None:
                continue
            snapshot[field] = float(value) if isinstance(value, Decimal) else value
        return snapshot

    @staticmethod
    def _validate_content(message: Optional[str], notification_type: Optional[str]):
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message is required")

        notification_type = notification_type or NotificationType.info.value
        if notification_type not in {t.value for t in NotificationType}:
            raise ValidationError(
                f"Invalid notification type '{notification_type}'. "
                f"Expected one of: {', '.join(t.value for t in NotificationType)}"
            )
        return message, notification_type

    @staticmethod
    async def _fan_out(
        db: AsyncSession,
        user_ids: List[int],
        message: str,
        notification_type: str,
        offer: Optional[Any],
    ) -> int:
        data = {"offer": NotificationService.build_offer_snapshot(offer)} if offer is not None else None
        created_at = datetime.utcnow()
        batch_size = max(1, settings.NOTIFICATION_BATCH_SIZE)
        created = 0
        logger.info(f"Sending '{notification_type}' notification to {len(user_ids)} users")

        for start in range(0, len(user_ids), batch_size):
            batch = user_ids[start:start + batch_size]
            db.add_all([
                Notification(
                    user_id=user_id,
                    message=message,
                    type=notification_type,
                    data=copy.deepcopy(data),
                    read=False,
                    created_at=created_at,
                )
                for user_id in batch
            ])
            try:
                await db.commit()
            except DBAPIError as e:
                await db.rollback()
                logger.error(
                    f"Notification fan-out failed after {created}/{len(user_ids)} recipients: {str(e)}"
                )
                raise StoreUnavailable(
                    f"Notification delivery interrupted after {created} of {len(user_ids)} recipients"
                ) from e
            created += len(batch)

        logger.info(f"Created {created} '{notification_type}' notifications")
        return created

    @staticmethod
    async def send_to_users(
        db: AsyncSession,
        user_ids: Iterable[int],
        message: str,
        notification_type: Optional[str] = None,
        offer: Optional[Any] = None,
    ) -> int:
        """Send the same notification to every id in `user_ids`. Returns the number created."""
        message, notification_type = NotificationService._validate_content(message, notification_type)

        recipients = sorted(set(user_ids or []))
        if not recipients:
            raise ValidationError("At least one recipient is required")

        stmt = select(User.id).where(User.id.in_(recipients))
        found = set((await db.execute(stmt)).scalars().all())
        missing = [user_id for user_id in recipients if user_id not in found]
        if missing:
            raise NotFoundError(f"Users not found: {', '.join(str(m) for m in missing)}")

        return await NotificationService._fan_out(db, recipients, message, notification_type, offer)

    @staticmethod
    async def send_to_role(
        db: AsyncSession,
        role: str,
        message: str,
        notification_type: Optional[str] = None,
        offer: Optional[Any] = None,
    ) -> int:
        """
        Send to every active user holding `role`. Membership is resolved once,
        when the call starts; users created afterwards are not included.
        """
        message, notification_type = NotificationService._validate_content(message, notification_type)

        if role not in {r.value for r in UserRole}:
            raise ValidationError(f"Invalid role '{role}'")

        stmt = (
            select(User.id)
            .where(User.role == role, User.is_active == True)
            .order_by(User.id)
        )
        recipients = list((await db.execute(stmt)).scalars().all())
        if not recipients:
            logger.info(f"No active users with role '{role}', nothing sent")
            return 0

        return await NotificationService._fan_out(db, recipients, message, notification_type, offer)

    @staticmethod
    def serialize(notification: Notification) -> Dict[str, Any]:
        item = {
            "id": notification.id,
            "message": notification.message,
            "type": notification.type,
            "read": notification.read,
            "timestamp": notification.created_at.isoformat() if notification.created_at else None,
        }
        if notification.data:
            item["data"] = notification.data
        return item

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: int, limit: Optional[int] = None) -> Dict[str, Any]:
        """Newest notifications first. `unreadCount` covers all of the user's notifications, not just this page."""
        if limit is None:
            limit = settings.DEFAULT_NOTIFICATION_LIMIT
        if limit < 1:
            raise ValidationError("limit must be a positive integer")

        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        notifications = (await db.execute(stmt)).scalars().all()

        unread_stmt = select(func.count(Notification.id)).where(
            and_(
                Notification.user_id == user_id,
                Notification.read == False
            )
        )
        unread_count = (await db.execute(unread_stmt)).scalar() or 0

        return {
            "notifications": [NotificationService.serialize(n) for n in notifications],
            "unreadCount": unread_count,
        }

    @staticmethod
    async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
        notification = await db.get(Notification, notification_id)
        # Same error for "missing" and "someone else's"
        if not notification or notification.user_id != user_id:
            raise NotFoundError("Notification not found")

        if not notification.read:
            notification.read = True
            notification.read_at = datetime.utcnow()
            await db.commit()

        return True

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        stmt = update(Notification).where(
            and_(
                Notification.user_id == user_id,
                Notification.read == False
            )
        ).values(
            read=True,
            read_at=datetime.utcnow()
        )

        result = await db.execute(stmt)
        await db.commit()

        return result.rowcount or 0
