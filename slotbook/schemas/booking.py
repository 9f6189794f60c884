from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

# Import enums from the model to avoid duplication
from slotbook.models.booking import BookingStatus, CancelledBy, PaymentMethod

MAX_NOTES_LENGTH = 1000


def validate_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValueError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
    return notes or None


class BookingCreate(BaseModel):
    client_id: int
    service_id: Optional[int] = None
    court_id: Optional[int] = None
    employee_id: Optional[int] = None
    start_at: datetime
    duration_minutes: Optional[int] = Field(None, gt=0)
    paid: bool = False
    payment_method: Optional[PaymentMethod] = None
    client_notes: Optional[str] = None
    session_id: Optional[str] = Field(
        None, description="Slot hold session that may book a held slot"
    )

    @field_validator("client_notes")
    @classmethod
    def validate_client_notes(cls, v):
        return validate_notes(v)

    @model_validator(mode="after")
    def validate_target(self):
        if (self.service_id is None) == (self.court_id is None):
            raise ValueError("Provide either service_id or court_id, but not both")
        if self.court_id is not None and self.employee_id is not None:
            raise ValueError("Court bookings cannot have an employee")
        return self


class BookingUpdate(BaseModel):
    start_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    employee_id: Optional[int] = None
    client_notes: Optional[str] = None
    paid: Optional[bool] = None
    payment_method: Optional[PaymentMethod] = None
    session_id: Optional[str] = None

    @field_validator("client_notes")
    @classmethod
    def validate_client_notes(cls, v):
        return validate_notes(v)


class BookingReschedule(BaseModel):
    new_start_at: datetime
    session_id: Optional[str] = None


class BookingStatusTransition(BaseModel):
    new_status: BookingStatus
    notes: Optional[str] = None
    cancelled_by: CancelledBy = CancelledBy.BUSINESS

    @field_validator("notes")
    @classmethod
    def validate_transition_notes(cls, v):
        return validate_notes(v)


class BookingCancel(BaseModel):
    cancelled_by: CancelledBy = CancelledBy.CLIENT
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        return validate_notes(v)


class Booking(BaseModel):
    id: int
    uuid: UUID
    business_id: int
    client_id: int
    service_id: Optional[int] = None
    court_id: Optional[int] = None
    employee_id: Optional[int] = None

    start_at: datetime
    end_at: datetime
    duration_minutes: int

    status: BookingStatus
    previous_status: Optional[BookingStatus] = None
    status_changed_at: Optional[datetime] = None

    price: Decimal
    paid: bool
    payment_method: Optional[PaymentMethod] = None

    client_notes: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None

    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None

    reschedule_count: int
    rescheduled_from: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingList(BaseModel):
    bookings: List[Booking]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class BookingFilters(BaseModel):
    employee_id: Optional[int] = None
    court_id: Optional[int] = None
    client_id: Optional[int] = None
    service_id: Optional[int] = None
    status: Optional[BookingStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class BookingSearch(BaseModel):
    filters: BookingFilters = Field(default_factory=BookingFilters)
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class SlotHoldRequest(BaseModel):
    """Hold a slot while the client completes checkout."""

    session_id: str = Field(..., min_length=1, max_length=128)
    service_id: Optional[int] = None
    court_id: Optional[int] = None
    employee_id: Optional[int] = None
    start_at: datetime
    duration_minutes: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def validate_target(self):
        if (self.service_id is None) == (self.court_id is None):
            raise ValueError("Provide either service_id or court_id, but not both")
        if self.court_id is not None and self.employee_id is not None:
            raise ValueError("Court bookings cannot have an employee")
        return self


class SlotHoldResponse(BaseModel):
    held: bool
    session_id: str
    start_at: datetime
    end_at: datetime
    expires_in_seconds: int
    keys: List[str] = Field(default_factory=list)


class SlotReleaseResponse(BaseModel):
    released: int


class CancellationPolicyResponse(BaseModel):
    can_cancel: bool
    reason: Optional[str] = None
    cancellation_deadline: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
