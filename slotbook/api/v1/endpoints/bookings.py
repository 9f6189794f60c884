from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps.business import BusinessContext, get_business_from_header
from slotbook.api.deps.redis import get_redis_client
from slotbook.api.errors import internal_error, to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.core.redis import RedisClient
from slotbook.models.booking import BookingStatus
from slotbook.schemas.booking import (
    Booking,
    BookingCancel,
    BookingCreate,
    BookingFilters,
    BookingList,
    BookingReschedule,
    BookingSearch,
    BookingStatusTransition,
    BookingUpdate,
    CancellationPolicyResponse,
    SlotHoldRequest,
    SlotHoldResponse,
    SlotReleaseResponse,
)
from slotbook.services.booking import BookingService

router = APIRouter()


@router.post("/", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """Create a booking; the slot is locked and re-checked before insert."""
    service = BookingService(db, redis)
    try:
        return await service.create_booking(context.business, booking_data)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "create booking", e)


@router.get("/", response_model=BookingList)
async def list_bookings(
    employee_id: Optional[int] = Query(None),
    court_id: Optional[int] = Query(None),
    client_id: Optional[int] = Query(None),
    service_id: Optional[int] = Query(None),
    status: Optional[BookingStatus] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Bookings of the business, newest start first."""
    search = BookingSearch(
        filters=BookingFilters(
            employee_id=employee_id,
            court_id=court_id,
            client_id=client_id,
            service_id=service_id,
            status=status,
            start_date=start_date,
            end_date=end_date,
        ),
        page=page,
        page_size=page_size,
    )

    service = BookingService(db)
    bookings, total_count = await service.list_bookings(context.business, search)

    total_pages = (total_count + page_size - 1) // page_size

    return BookingList(
        bookings=bookings,
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.post("/holds", response_model=SlotHoldResponse, status_code=status.HTTP_201_CREATED)
async def hold_slot(
    hold_data: SlotHoldRequest,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """Temporarily reserve a free slot for a checkout session."""
    service = BookingService(db, redis)
    try:
        return await service.hold_slot(context.business, hold_data)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "hold slot", e)


@router.post("/holds/release", response_model=SlotReleaseResponse)
async def release_slot(
    hold_data: SlotHoldRequest,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """Release a session's own hold; holds of other sessions are left alone."""
    service = BookingService(db, redis)
    try:
        return await service.release_slot(context.business, hold_data)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    service = BookingService(db)
    try:
        return await service.get_booking(context.business, booking_id)
    except BookingError as e:
        raise to_http_exception(e)


@router.patch("/{booking_id}", response_model=Booking)
async def update_booking(
    booking_id: int,
    update_data: BookingUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    """Update an active booking; time, duration and employee changes are revalidated."""
    service = BookingService(db, redis)
    try:
        return await service.update_booking(context.business, booking_id, update_data)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "update booking", e)


@router.post("/{booking_id}/reschedule", response_model=Booking)
async def reschedule_booking(
    booking_id: int,
    reschedule_data: BookingReschedule,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis_client),
):
    service = BookingService(db, redis)
    try:
        return await service.reschedule_booking(
            context.business, booking_id, reschedule_data
        )
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "reschedule booking", e)


@router.post("/{booking_id}/status", response_model=Booking)
async def transition_booking_status(
    booking_id: int,
    transition: BookingStatusTransition,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a booking through its lifecycle.

    PENDING_CONSENT -> CONFIRMED | CANCELLED, CONFIRMED -> COMPLETED | CANCELLED.
    """
    service = BookingService(db)
    try:
        return await service.transition_booking_status(
            context.business, booking_id, transition
        )
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "change booking status", e)


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: int,
    cancel_data: BookingCancel,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking; client cancellations respect the cancellation window."""
    service = BookingService(db)
    try:
        return await service.cancel_booking(context.business, booking_id, cancel_data)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "cancel booking", e)


@router.get("/{booking_id}/cancellation-policy", response_model=CancellationPolicyResponse)
async def check_cancellation_policy(
    booking_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Whether the client can still cancel this booking."""
    service = BookingService(db)
    try:
        return await service.check_cancellation_policy(context.business, booking_id)
    except BookingError as e:
        raise to_http_exception(e)


@router.delete("/{booking_id}", response_model=Booking)
async def delete_booking(
    booking_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Delete booking (soft delete by cancelling)."""
    service = BookingService(db)
    try:
        return await service.delete_booking(context.business, booking_id)
    except (BookingError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise await internal_error(db, "delete booking", e)
