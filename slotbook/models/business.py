import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime


class BusinessType(enum.Enum):
    SALON = "SALON"
    BEAUTY = "BEAUTY"
    CLINIC = "CLINIC"
    DENTAL = "DENTAL"
    OPHTHALMOLOGY = "OPHTHALMOLOGY"
    PSYCHOLOGY = "PSYCHOLOGY"
    THERAPY = "THERAPY"
    SPORT_OUTDOOR = "SPORT_OUTDOOR"
    OTHER = "OTHER"


# New bookings for these types wait for a signed consent form.
CONSENT_REQUIRED_TYPES = frozenset(
    {
        BusinessType.BEAUTY.value,
        BusinessType.DENTAL.value,
        BusinessType.OPHTHALMOLOGY.value,
        BusinessType.PSYCHOLOGY.value,
        BusinessType.THERAPY.value,
    }
)


class Business(Base):
    """Tenant: a salon, clinic or sport facility taking bookings."""

    __tablename__ = "businesses"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)
    business_type = Column(String(30), nullable=False, default=BusinessType.OTHER.value)

    # Profile
    description = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)

    # Scheduling
    timezone = Column(String(50), nullable=False, default="Europe/Bucharest")
    slot_duration_minutes = Column(Integer, nullable=True)  # derived from services when null
    public_holiday_country = Column(String(2), nullable=True)

    # Booking policies
    policy = Column(JSON, nullable=True)  # min_lead_minutes, max_advance_days, ...

    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    services = relationship("Service", back_populates="business")
    employees = relationship("Employee", back_populates="business")
    courts = relationship("Court", back_populates="business")

    @property
    def is_sport(self) -> bool:
        return self.business_type == BusinessType.SPORT_OUTDOOR.value

    @property
    def requires_consent(self) -> bool:
        return self.business_type in CONSENT_REQUIRED_TYPES

    def policy_value(self, key: str, default=None):
        """Read a booking policy override, falling back to ``default``."""
        if self.policy and self.policy.get(key) is not None:
            return self.policy[key]
        return default

    def __repr__(self):
        return (
            f"<Business(id={self.id}, name='{self.name}', "
            f"type={self.business_type}, tz={self.timezone})>"
        )
