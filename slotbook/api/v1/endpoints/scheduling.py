from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps.business import BusinessContext, get_business_from_header
from slotbook.api.deps.redis import get_redis_client
from slotbook.api.errors import internal_error, to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.core.redis import RedisClient
from slotbook.schemas.availability import (
    AvailabilityQuery,
    AvailableDaysQuery,
    AvailableDaysResponse,
    BookingValidationRequest,
    BookingValidationResponse,
    DayAvailability,
)
from slotbook.services.scheduling import SchedulingEngineService

router = APIRouter()


@router.get("/availability", response_model=DayAvailability)
async def get_availability(
    day: date = Query(..., description="Local date in the business timezone"),
    service_id: Optional[int] = Query(None),
    court_id: Optional[int] = Query(None),
    employee_id: Optional[int] = Query(None),
    duration_minutes: Optional[int] = Query(None, gt=0),
    include_unavailable: bool = Query(
        False, description="Include booked, held, past and closed slots"
    ),
    session_id: Optional[str] = Query(
        None, description="Slots held by this session are reported as available"
    ),
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """
    Slots of one day for a service (optionally with an employee) or a court.

    Considers working hours and breaks, closure periods, public holidays,
    existing bookings, slot holds and the lead time / advance booking policy.
    """
    engine = SchedulingEngineService(db, redis)
    try:
        query = AvailabilityQuery(
            day=day,
            service_id=service_id,
            court_id=court_id,
            employee_id=employee_id,
            duration_minutes=duration_minutes,
            include_unavailable=include_unavailable,
            session_id=session_id,
        )
        return await engine.get_day_availability(context.business, query)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "compute availability", e)


@router.get("/courts/{court_id}/availability", response_model=DayAvailability)
async def get_court_availability(
    court_id: int,
    day: date = Query(..., description="Local date in the business timezone"),
    include_unavailable: bool = Query(True),
    session_id: Optional[str] = Query(None),
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """Hourly court slots with their pricing tier; SPORT_OUTDOOR businesses only."""
    engine = SchedulingEngineService(db, redis)
    try:
        query = AvailabilityQuery(
            day=day,
            court_id=court_id,
            include_unavailable=include_unavailable,
            session_id=session_id,
        )
        return await engine.get_day_availability(context.business, query)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "compute court availability", e)


@router.get("/available-days", response_model=AvailableDaysResponse)
async def get_available_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    service_id: Optional[int] = Query(None),
    court_id: Optional[int] = Query(None),
    employee_id: Optional[int] = Query(None),
    duration_minutes: Optional[int] = Query(None, gt=0),
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Days of an inclusive range that have at least one free slot."""
    engine = SchedulingEngineService(db)
    try:
        query = AvailableDaysQuery(
            start_date=start_date,
            end_date=end_date,
            service_id=service_id,
            court_id=court_id,
            employee_id=employee_id,
            duration_minutes=duration_minutes,
        )
        return await engine.get_available_days(context.business, query)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "compute available days", e)


@router.post("/validate", response_model=BookingValidationResponse)
async def validate_booking(
    request: BookingValidationRequest,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """
    Check a booking request without reserving it.

    Returns every conflict found and, when the request is invalid, the
    closest available alternatives.
    """
    engine = SchedulingEngineService(db, redis)
    try:
        return await engine.validate_booking(context.business, request)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "validate booking", e)
