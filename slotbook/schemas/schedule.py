from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from slotbook.models.working_hours import WeekDay
from slotbook.utils.validation import validate_day_slots

DAY_KEYS = [day.name.lower() for day in WeekDay]


class TimeRange(BaseModel):
    start: str = Field(..., pattern=r"^\d{2}:\d{2}$", examples=["09:00"])
    end: str = Field(..., pattern=r"^\d{2}:\d{2}$", examples=["17:00"])


class DaySchedule(BaseModel):
    enabled: bool = False
    slots: List[TimeRange] = Field(default_factory=list)


class WeeklySchedule(BaseModel):
    """Weekly working hours keyed by lowercase weekday name.

    A day with several slots has breaks between them. Missing days are closed.
    """

    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)

    @model_validator(mode="after")
    def validate_days(self):
        errors = []
        for day in DAY_KEYS:
            schedule: DaySchedule = getattr(self, day)
            if schedule.enabled and not schedule.slots:
                errors.append(f"{day}: an enabled day needs at least one slot")
            errors.extend(
                validate_day_slots(day, [slot.model_dump() for slot in schedule.slots])
            )
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def enabled_days(self) -> Dict[str, List[TimeRange]]:
        return {
            day: getattr(self, day).slots
            for day in DAY_KEYS
            if getattr(self, day).enabled
        }


class ClosurePeriodCreate(BaseModel):
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ClosurePeriod(BaseModel):
    id: int
    owner_type: str
    owner_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
