from sqlalchemy import Column, Integer, Float, Date, ForeignKey
from app.database import Base


class UsageRecord(Base):
    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    # GB for the period, speeds in Mbps
    data_used = Column(Float, nullable=False, default=0)
    average_speed = Column(Float, nullable=False, default=0)
    peak_speed = Column(Float, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "dataUsed": self.data_used,
            "averageSpeed": self.average_speed,
            "peakSpeed": self.peak_speed,
        }
