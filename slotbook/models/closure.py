from sqlalchemy import Column, Date, Index, Integer, String, Text
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime


class ClosurePeriod(Base):
    """Holiday or leave: whole local days when a business or employee takes no bookings."""

    __tablename__ = "closure_periods"

    id = Column(Integer, primary_key=True, index=True)
    owner_type = Column(String(20), nullable=False)
    owner_id = Column(Integer, nullable=False)

    # Inclusive local dates
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_closure_periods_owner", "owner_type", "owner_id"),
        Index("ix_closure_periods_dates", "start_date", "end_date"),
    )

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    def __repr__(self):
        return (
            f"<ClosurePeriod(id={self.id}, {self.owner_type}_id={self.owner_id}, "
            f"{self.start_date} - {self.end_date})>"
        )
