from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class EmployeeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None
    is_bookable: bool = True
    is_active: bool = True


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None
    is_bookable: Optional[bool] = None
    is_active: Optional[bool] = None


class Employee(EmployeeBase):
    id: int
    uuid: UUID
    business_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmployeeServiceOverride(BaseModel):
    """Employee offers a service, optionally with its own price or duration."""

    price_override: Optional[Decimal] = Field(None, ge=0)
    duration_override_minutes: Optional[int] = Field(None, gt=0)

    @field_validator("duration_override_minutes")
    def duration_in_quarters(cls, v):
        if v is not None and v % 15 != 0:
            raise ValueError("Duration must be a multiple of 15 minutes")
        return v


class EmployeeServiceMapping(EmployeeServiceOverride):
    id: int
    employee_id: int
    service_id: int

    class Config:
        from_attributes = True
