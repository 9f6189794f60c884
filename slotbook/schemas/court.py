from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from slotbook.models.court import TimeSlot


class CourtPricingTier(BaseModel):
    time_slot: TimeSlot
    price: Decimal = Field(..., ge=0)
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=1, le=24)

    @model_validator(mode="after")
    def validate_hours(self):
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self

    class Config:
        from_attributes = True


class CourtPricingUpdate(BaseModel):
    """Full replacement of a court's pricing: one tier per time slot."""

    pricing: List[CourtPricingTier]

    @model_validator(mode="after")
    def validate_tiers(self):
        if len(self.pricing) != len(TimeSlot):
            raise ValueError("Exactly 3 tiers are required (MORNING, AFTERNOON, NIGHT)")
        if {tier.time_slot for tier in self.pricing} != set(TimeSlot):
            raise ValueError("Each of MORNING, AFTERNOON and NIGHT must appear once")
        return self


class CourtPricing(BaseModel):
    pricing: List[CourtPricingTier] = Field(default_factory=list)


class CourtCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    number: int = Field(..., ge=1)
    is_active: bool = True


class CourtUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    number: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class Court(BaseModel):
    id: int
    uuid: UUID
    business_id: int
    name: str
    number: int
    is_active: bool
    pricing: List[CourtPricingTier] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CourtDeleteResponse(BaseModel):
    """``deleted`` is false when the court was only deactivated."""

    deleted: bool
    court: Optional[Court] = None
