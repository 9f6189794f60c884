from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps.business import BusinessContext, get_business_from_header
from slotbook.api.errors import internal_error, to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.models.business import Business as BusinessModel
from slotbook.models.working_hours import OwnerType
from slotbook.schemas.business import (
    Business,
    BusinessCreate,
    BusinessUpdate,
    SlotDurationUpdate,
)
from slotbook.schemas.schedule import ClosurePeriod, ClosurePeriodCreate, WeeklySchedule
from slotbook.services.business import BusinessService
from slotbook.services.schedule import ScheduleService

router = APIRouter()


async def _business_response(db: AsyncSession, business: BusinessModel) -> Business:
    response = Business.model_validate(business)
    response.resolved_slot_duration_minutes = (
        await BusinessService().get_resolved_slot_duration(db, business)
    )
    return response


@router.post("/", response_model=Business, status_code=status.HTTP_201_CREATED)
async def create_business(
    business_data: BusinessCreate, db: AsyncSession = Depends(get_db)
):
    """Register a new business (tenant)."""
    try:
        business = await BusinessService().create_business(db, business_data)
        return await _business_response(db, business)
    except Exception as e:
        raise await internal_error(db, "create business", e)


@router.get("/", response_model=Business)
async def get_current_business(
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Business from the X-Business-ID header, with its resolved slot duration."""
    return await _business_response(db, context.business)


@router.patch("/", response_model=Business)
async def update_business(
    business_update: BusinessUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        business = await BusinessService().update_business(
            db, context.business, business_update
        )
        return await _business_response(db, business)
    except Exception as e:
        raise await internal_error(db, "update business", e)


@router.put("/slot-duration", response_model=Business)
async def set_slot_duration(
    slot_duration: SlotDurationUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Set the booking grid step (15, 30, 45 or 60); null derives it from the services."""
    business = await BusinessService().set_slot_duration(
        db, context.business, slot_duration.slot_duration_minutes
    )
    return await _business_response(db, business)


@router.get("/working-hours", response_model=WeeklySchedule)
async def get_working_hours(
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleService(db).get_weekly_hours(
        OwnerType.BUSINESS, context.business_id
    )


@router.put("/working-hours", response_model=WeeklySchedule)
async def set_working_hours(
    schedule: WeeklySchedule,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Replace the weekly working hours; several slots per day leave breaks between them."""
    try:
        return await ScheduleService(db).set_weekly_hours(
            OwnerType.BUSINESS, context.business_id, schedule
        )
    except Exception as e:
        raise await internal_error(db, "update working hours", e)


@router.get("/closures", response_model=List[ClosurePeriod])
async def list_closures(
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleService(db).list_closures(OwnerType.BUSINESS, context.business_id)


@router.post("/closures", response_model=ClosurePeriod, status_code=status.HTTP_201_CREATED)
async def create_closure(
    closure_data: ClosurePeriodCreate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Close the business for whole days (holidays)."""
    try:
        return await ScheduleService(db).create_closure(
            OwnerType.BUSINESS, context.business_id, closure_data
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.delete("/closures/{closure_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_closure(
    closure_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        await ScheduleService(db).delete_closure(
            OwnerType.BUSINESS, context.business_id, closure_id
        )
    except BookingError as e:
        raise to_http_exception(e)
