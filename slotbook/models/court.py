import enum
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime


class TimeSlot(enum.Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    NIGHT = "NIGHT"


class Court(Base):
    """Sport court rented by the hour."""

    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    number = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("business_id", "number", name="uq_court_business_number"),
    )

    business = relationship("Business", back_populates="courts")
    pricing = relationship(
        "CourtPricing",
        back_populates="court",
        cascade="all, delete-orphan",
        order_by="CourtPricing.start_hour",
    )

    def __repr__(self):
        return f"<Court(id={self.id}, number={self.number}, name='{self.name}')>"


class CourtPricing(Base):
    """Hourly price of a court within one time-of-day tier."""

    __tablename__ = "court_pricing"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False, index=True)
    time_slot = Column(String(20), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    start_hour = Column(Integer, nullable=False)
    end_hour = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("court_id", "time_slot", name="uq_court_pricing_tier"),
        CheckConstraint("price >= 0", name="check_court_price_non_negative"),
        CheckConstraint("start_hour < end_hour", name="check_court_tier_hours"),
    )

    court = relationship("Court", back_populates="pricing")

    def covers_hour(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour

    def __repr__(self):
        return (
            f"<CourtPricing(court_id={self.court_id}, {self.time_slot}: "
            f"{self.start_hour}-{self.end_hour}h @ {self.price})>"
        )
