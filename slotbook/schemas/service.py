from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def validate_duration(value: Optional[int]) -> Optional[int]:
    if value is not None and value % 15 != 0:
        raise ValueError("Duration must be a multiple of 15 minutes")
    return value


class ServiceBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: int = Field(..., gt=0, le=24 * 60)
    price: Decimal = Field(..., ge=0)
    is_active: bool = True

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration_field(cls, v):
        return validate_duration(v)


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    price: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration_field(cls, v):
        return validate_duration(v)


class Service(ServiceBase):
    id: int
    uuid: UUID
    business_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
