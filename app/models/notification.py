import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from app.database import Base


class NotificationType(str, enum.Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class Notification(Base):
    """A message delivered to one user.

    `data` holds a copy of any attached offer taken at send time
    (`{"offer": {...}}`), not a reference to the discount row, so later
    edits to the discount never rewrite delivered notifications.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=NotificationType.info.value)
    data = Column(JSON, nullable=True)

    # Only ever flips False -> True
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    read_at = Column(DateTime, nullable=True)
