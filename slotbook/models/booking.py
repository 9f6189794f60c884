import enum
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime, utcnow


class BookingStatus(enum.Enum):
    PENDING_CONSENT = "PENDING_CONSENT"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentMethod(enum.Enum):
    CARD = "CARD"
    APPLEPAY = "APPLEPAY"
    GOOGLEPAY = "GOOGLEPAY"
    KLARNA = "KLARNA"
    OFFLINE = "OFFLINE"
    CASH = "CASH"


class CancelledBy(enum.Enum):
    CLIENT = "CLIENT"
    BUSINESS = "BUSINESS"


ACTIVE_STATUSES = (
    BookingStatus.PENDING_CONSENT.value,
    BookingStatus.CONFIRMED.value,
)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING_CONSENT: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}


class Booking(Base):
    """Reservation of an employee/service or a court for a time interval."""

    __tablename__ = "bookings"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)

    # Exactly one of service_id / court_id is set
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    # Scheduling
    start_at = Column(UTCDateTime, nullable=False, index=True)
    end_at = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    # Status
    status = Column(
        String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True
    )
    previous_status = Column(String(20), nullable=True)
    status_changed_at = Column(UTCDateTime, nullable=True)

    # Pricing and payment
    price = Column(Numeric(10, 2), nullable=False)
    paid = Column(Boolean, default=False, nullable=False)
    payment_method = Column(String(20), nullable=True)

    # Communication
    client_notes = Column(Text, nullable=True)
    reminder_sent_at = Column(UTCDateTime, nullable=True)

    # Cancellation
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancelled_by = Column(String(20), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Rescheduling
    reschedule_count = Column(Integer, default=0, nullable=False)
    rescheduled_from = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="check_booking_end_after_start"),
        CheckConstraint("duration_minutes > 0", name="check_booking_positive_duration"),
        CheckConstraint("price >= 0", name="check_booking_non_negative_price"),
        CheckConstraint(
            "(service_id IS NULL) <> (court_id IS NULL)",
            name="check_booking_service_xor_court",
        ),
        Index("ix_bookings_employee_start", "employee_id", "start_at"),
        Index("ix_bookings_court_start", "court_id", "start_at"),
        Index("ix_bookings_business_start", "business_id", "start_at"),
    )

    business = relationship("Business")
    client = relationship("Client")
    service = relationship("Service")
    court = relationship("Court")
    employee = relationship("Employee")

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        """Check if booking can move to ``new_status``."""
        current = BookingStatus(self.status)
        return new_status in ALLOWED_TRANSITIONS.get(current, set())

    def transition_to(
        self,
        new_status: BookingStatus,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Move booking to ``new_status``; returns False for forbidden transitions."""
        if not self.can_transition_to(new_status):
            return False

        if now is None:
            now = utcnow()
        self.previous_status = self.status
        self.status = new_status.value
        self.status_changed_at = now

        if new_status == BookingStatus.CANCELLED:
            self.cancelled_at = now
            if notes:
                self.cancellation_reason = notes

        return True

    def cancellation_status(
        self,
        limit: timedelta,
        reminder_grace: timedelta,
        now: Optional[datetime] = None,
    ) -> tuple[bool, Optional[str]]:
        """Whether a client may still cancel, with the refusal message when not."""
        if now is None:
            now = utcnow()

        if not self.is_active:
            return False, "Booking cannot be cancelled in its current status"

        if self.reminder_sent_at and now > self.reminder_sent_at + reminder_grace:
            return False, "Cancellation period after the reminder has expired"

        if self.start_at - now < limit:
            return False, "Booking can no longer be cancelled, the cancellation limit has passed"

        return True, None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_court_booking(self) -> bool:
        return self.court_id is not None

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, status='{self.status}', "
            f"start='{self.start_at}', employee_id={self.employee_id}, "
            f"court_id={self.court_id})>"
        )
