from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    HELD = "held"
    PAST = "past"
    TOO_SOON = "too_soon"
    TOO_FAR = "too_far"
    CLOSED = "closed"


class ConflictType(str, Enum):
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    CLOSED = "closed"
    EXISTING_BOOKING = "existing_booking"
    PAST = "past"
    LEAD_TIME_VIOLATION = "lead_time_violation"
    ADVANCE_BOOKING_VIOLATION = "advance_booking_violation"
    SLOT_HELD = "slot_held"
    RESOURCE_INACTIVE = "resource_inactive"


# Status shown for a slot when several conflicts apply, most significant first.
STATUS_BY_CONFLICT = [
    (ConflictType.RESOURCE_INACTIVE, SlotStatus.CLOSED),
    (ConflictType.CLOSED, SlotStatus.CLOSED),
    (ConflictType.OUTSIDE_WORKING_HOURS, SlotStatus.CLOSED),
    (ConflictType.PAST, SlotStatus.PAST),
    (ConflictType.EXISTING_BOOKING, SlotStatus.BOOKED),
    (ConflictType.SLOT_HELD, SlotStatus.HELD),
    (ConflictType.LEAD_TIME_VIOLATION, SlotStatus.TOO_SOON),
    (ConflictType.ADVANCE_BOOKING_VIOLATION, SlotStatus.TOO_FAR),
]


class TargetQuery(BaseModel):
    """What is being booked: a service (optionally with an employee) or a court."""

    service_id: Optional[int] = None
    court_id: Optional[int] = None
    employee_id: Optional[int] = None
    duration_minutes: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def validate_target(self):
        if (self.service_id is None) == (self.court_id is None):
            raise ValueError("Provide either service_id or court_id, but not both")
        if self.court_id is not None and self.employee_id is not None:
            raise ValueError("Court bookings cannot have an employee")
        return self


class AvailabilityQuery(TargetQuery):
    day: date
    include_unavailable: bool = False
    session_id: Optional[str] = None


class AvailableDaysQuery(TargetQuery):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AvailabilitySlot(BaseModel):
    start_at: datetime
    end_at: datetime
    local_time: str
    status: SlotStatus
    price: Decimal
    time_slot: Optional[str] = None
    conflicts: List[ConflictType] = Field(default_factory=list)


class DayAvailability(BaseModel):
    day: date
    timezone: str
    slot_duration_minutes: int
    duration_minutes: int
    is_open: bool
    holiday: Optional[str] = None
    slots: List[AvailabilitySlot] = Field(default_factory=list)


class AvailableDaysResponse(BaseModel):
    start_date: date
    end_date: date
    available_days: List[date] = Field(default_factory=list)


class SchedulingConflict(BaseModel):
    conflict_type: ConflictType
    message: str


class BookingValidationRequest(TargetQuery):
    start_at: datetime
    session_id: Optional[str] = None


class BookingValidationResponse(BaseModel):
    is_valid: bool
    conflicts: List[SchedulingConflict] = Field(default_factory=list)
    alternative_slots: List[AvailabilitySlot] = Field(default_factory=list)
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    price: Decimal
