import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from app.database import Base


class BillingCycle(str, enum.Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


# Number of months one billing period covers
BILLING_CYCLE_MONTHS = {
    BillingCycle.monthly.value: 1,
    BillingCycle.quarterly.value: 3,
    BillingCycle.yearly.value: 12,
}


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    product_type = Column(String(50), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    billing_cycle = Column(String(20), nullable=False, default=BillingCycle.monthly.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "productType": self.product_type,
            "price": float(self.price or 0),
            "billingCycle": self.billing_cycle,
        }
