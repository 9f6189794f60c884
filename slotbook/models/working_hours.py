import enum

from sqlalchemy import Column, Index, Integer, String, Time
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime


class OwnerType(enum.Enum):
    BUSINESS = "BUSINESS"
    EMPLOYEE = "EMPLOYEE"


class WeekDay(enum.Enum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class WorkingHours(Base):
    """One working interval of a business or employee on a weekday.

    Several rows for the same owner and weekday describe a split day; the
    gaps between them are breaks. Times are local to the business timezone.
    """

    __tablename__ = "working_hours"

    id = Column(Integer, primary_key=True, index=True)
    owner_type = Column(String(20), nullable=False)
    owner_id = Column(Integer, nullable=False)

    weekday = Column(String(20), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_working_hours_owner", "owner_type", "owner_id"),
        Index("ix_working_hours_weekday", "weekday"),
    )

    def __repr__(self):
        return (
            f"<WorkingHours(id={self.id}, {self.owner_type}_id={self.owner_id}, "
            f"{self.weekday}: {self.start_time}-{self.end_time})>"
        )
