import enum
from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, ForeignKey, Boolean, DateTime
from app.database import Base


class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"


class Discount(Base):
    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String(20), nullable=False, default=DiscountType.percentage.value)
    value = Column(Numeric(10, 2), nullable=False)

    # Validity period
    is_active = Column(Boolean, default=True)
    start_date = Column(DateTime, default=datetime.utcnow)
    end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "value": float(self.value or 0),
            "isActive": self.is_active,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
        }


class DiscountUsage(Base):
    """Append-only record of a discount code applied to a payment"""
    __tablename__ = "discount_usages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    discount_id = Column(Integer, ForeignKey("discounts.id"), nullable=True)
    code = Column(String(50), nullable=False)

    amount_before = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    amount_after = Column(Numeric(10, 2), nullable=False)

    applied_at = Column(DateTime, default=datetime.utcnow, index=True)
