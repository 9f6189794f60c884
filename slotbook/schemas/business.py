from typing import Optional, Dict, Any
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytz
from pydantic import BaseModel, Field, field_validator

from slotbook.models.business import BusinessType
from slotbook.services.holidays import HolidayService
from slotbook.utils.validation import validate_business_policy


def validate_timezone(timezone: str) -> str:
    """Validate timezone string; it must also resolve through zoneinfo."""
    try:
        pytz.timezone(timezone)
        ZoneInfo(timezone)
    except (pytz.UnknownTimeZoneError, ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Invalid timezone: {timezone}")
    return timezone


def validate_holiday_country(country: Optional[str]) -> Optional[str]:
    """Validate a public holiday country code."""
    if country is None:
        return None
    country = country.upper()
    if not HolidayService.is_supported(country):
        raise ValueError(f"Unsupported public holiday country: {country}")
    return country


def validate_slot_duration(value: Optional[int]) -> Optional[int]:
    if value is not None and value not in (15, 30, 45, 60):
        raise ValueError("slot_duration_minutes must be 15, 30, 45 or 60")
    return value


def validate_policy(policy: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    errors = validate_business_policy(policy or {})
    if errors:
        raise ValueError("; ".join(errors))
    return policy


class BusinessBase(BaseModel):
    """Base business schema with common fields."""
    name: str = Field(..., min_length=1, max_length=255, description="Business name")
    business_type: BusinessType = Field(BusinessType.OTHER, description="Kind of business")
    description: Optional[str] = Field(None, description="Business description")
    phone: Optional[str] = Field(None, max_length=50, description="Business phone number")
    email: Optional[str] = Field(None, max_length=255, description="Business email address")
    address: Optional[str] = Field(None, description="Business address")
    timezone: str = Field("Europe/Bucharest", max_length=50, description="Business timezone")
    slot_duration_minutes: Optional[int] = Field(None, description="Booking grid step in minutes")
    public_holiday_country: Optional[str] = Field(
        None, min_length=2, max_length=2, description="Close on this country's public holidays"
    )
    policy: Optional[Dict[str, Any]] = Field(None, description="Booking policy overrides")

    @field_validator('timezone')
    @classmethod
    def validate_timezone_field(cls, v):
        return validate_timezone(v)

    @field_validator('public_holiday_country')
    @classmethod
    def validate_holiday_country_field(cls, v):
        return validate_holiday_country(v)

    @field_validator('slot_duration_minutes')
    @classmethod
    def validate_slot_duration_field(cls, v):
        return validate_slot_duration(v)

    @field_validator('policy')
    @classmethod
    def validate_policy_field(cls, v):
        return validate_policy(v)


class BusinessCreate(BusinessBase):
    """Schema for creating a new business."""
    pass


class BusinessUpdate(BaseModel):
    """Schema for updating business information."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    business_type: Optional[BusinessType] = None
    description: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    timezone: Optional[str] = Field(None, max_length=50)
    public_holiday_country: Optional[str] = Field(None, min_length=2, max_length=2)
    policy: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None

    @field_validator('timezone')
    @classmethod
    def validate_timezone_field(cls, v):
        if v is not None:
            return validate_timezone(v)
        return v

    @field_validator('public_holiday_country')
    @classmethod
    def validate_holiday_country_field(cls, v):
        return validate_holiday_country(v)

    @field_validator('policy')
    @classmethod
    def validate_policy_field(cls, v):
        return validate_policy(v)


class SlotDurationUpdate(BaseModel):
    """Explicit grid step; null derives it from the services again."""
    slot_duration_minutes: Optional[int] = None

    @field_validator('slot_duration_minutes')
    @classmethod
    def validate_slot_duration_field(cls, v):
        return validate_slot_duration(v)


class Business(BusinessBase):
    """Schema for business response."""
    id: int
    uuid: UUID
    is_active: bool
    resolved_slot_duration_minutes: Optional[int] = Field(
        None, description="Grid step actually used for availability"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
