from datetime import datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.database import utcnow
from slotbook.core.exceptions import (
    BookingValidationError,
    NotFoundError,
    SlotUnavailableError,
)
from slotbook.core.redis import RedisClient
from slotbook.models.booking import Booking, BookingStatus, CancelledBy
from slotbook.models.business import Business
from slotbook.models.client import Client
from slotbook.models.court import Court
from slotbook.models.employee import Employee
from slotbook.schemas.availability import (
    BookingValidationRequest,
    BookingValidationResponse,
    ConflictType,
)
from slotbook.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingReschedule,
    BookingSearch,
    BookingStatusTransition,
    BookingUpdate,
    CancellationPolicyResponse,
    SlotHoldRequest,
    SlotHoldResponse,
    SlotReleaseResponse,
)
from slotbook.services import schedule_rules as rules
from slotbook.services.scheduling import BookingTarget, SchedulingEngineService

logger = structlog.get_logger(__name__)

# Conflicts caused by someone else taking the slot; anything else is a bad request.
SLOT_CONFLICTS = frozenset({ConflictType.EXISTING_BOOKING, ConflictType.SLOT_HELD})


def raise_for_conflicts(validation: BookingValidationResponse) -> None:
    if validation.is_valid:
        return

    conflict_types = [c.conflict_type for c in validation.conflicts]
    details = {
        "conflicts": [c.model_dump(mode="json") for c in validation.conflicts],
        "alternative_slots": [
            slot.model_dump(mode="json") for slot in validation.alternative_slots
        ],
    }
    message = "; ".join(c.message for c in validation.conflicts)

    if set(conflict_types) <= SLOT_CONFLICTS:
        raise SlotUnavailableError(
            message, conflicts=[c.value for c in conflict_types], details=details
        )
    raise BookingValidationError(message, details=details)


class BookingService:
    """Booking reservation with conflict prevention, holds and cancellation policy."""

    def __init__(
        self,
        db: AsyncSession,
        redis: Optional[RedisClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.redis = redis
        self.clock = clock or utcnow
        self.scheduling_engine = SchedulingEngineService(db, redis, self.clock)

    async def create_booking(self, business: Business, booking_data: BookingCreate) -> Booking:
        """Validate, lock the resource, re-check and insert a booking."""
        await self._get_client(booking_data.client_id)

        request = BookingValidationRequest(
            service_id=booking_data.service_id,
            court_id=booking_data.court_id,
            employee_id=booking_data.employee_id,
            duration_minutes=booking_data.duration_minutes,
            start_at=booking_data.start_at,
            session_id=booking_data.session_id,
        )
        target, validation = await self.scheduling_engine.check_booking(business, request)
        raise_for_conflicts(validation)

        await self._lock_lane(target)
        await self._ensure_lane_free(target, validation.start_at, validation.end_at)

        status = (
            BookingStatus.PENDING_CONSENT
            if business.requires_consent
            else BookingStatus.CONFIRMED
        )
        booking = Booking(
            business_id=business.id,
            client_id=booking_data.client_id,
            service_id=target.service.id if target.service else None,
            court_id=target.court.id if target.court else None,
            employee_id=target.employee.id if target.employee else None,
            start_at=validation.start_at,
            end_at=validation.end_at,
            duration_minutes=validation.duration_minutes,
            status=status.value,
            status_changed_at=self.clock(),
            price=validation.price,
            paid=booking_data.paid,
            payment_method=(
                booking_data.payment_method.value if booking_data.payment_method else None
            ),
            client_notes=booking_data.client_notes,
        )
        self.db.add(booking)
        await self._commit_booking(target, validation)
        await self.db.refresh(booking)

        await self._release_own_hold(
            target, validation.start_at, validation.end_at, booking_data.session_id
        )

        logger.info(
            "Booking created",
            booking_id=booking.id,
            business_id=business.id,
            lane=target.lane_key,
            start_at=booking.start_at.isoformat(),
            status=booking.status,
        )
        return booking

    async def get_booking(self, business: Business, booking_id: int) -> Booking:
        result = await self.db.execute(
            select(Booking).where(
                and_(Booking.id == booking_id, Booking.business_id == business.id)
            )
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def list_bookings(
        self, business: Business, search: BookingSearch
    ) -> tuple[list[Booking], int]:
        """Filtered bookings of a business, newest start first."""
        query = select(Booking).where(Booking.business_id == business.id)

        filters = search.filters
        if filters.employee_id is not None:
            query = query.where(Booking.employee_id == filters.employee_id)
        if filters.court_id is not None:
            query = query.where(Booking.court_id == filters.court_id)
        if filters.client_id is not None:
            query = query.where(Booking.client_id == filters.client_id)
        if filters.service_id is not None:
            query = query.where(Booking.service_id == filters.service_id)
        if filters.status is not None:
            query = query.where(Booking.status == filters.status.value)
        tz = ZoneInfo(business.timezone)
        if filters.start_date is not None:
            query = query.where(Booking.start_at >= rules.ensure_aware(filters.start_date, tz))
        if filters.end_date is not None:
            query = query.where(Booking.start_at < rules.ensure_aware(filters.end_date, tz))

        count_query = select(func.count()).select_from(query.subquery())
        total_count = (await self.db.execute(count_query)).scalar()

        offset = (search.page - 1) * search.page_size
        query = (
            query.order_by(Booking.start_at.desc(), Booking.id.desc())
            .offset(offset)
            .limit(search.page_size)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total_count

    async def update_booking(
        self, business: Business, booking_id: int, update_data: BookingUpdate
    ) -> Booking:
        """Update an active booking; timing and employee changes are revalidated."""
        booking = await self.get_booking(business, booking_id)
        if not booking.is_active:
            raise BookingValidationError(
                f"Booking in status {booking.status} cannot be changed"
            )

        fields = update_data.model_dump(exclude_unset=True)
        new_start = fields.get("start_at") or booking.start_at
        new_duration = fields.get("duration_minutes") or booking.duration_minutes
        new_employee = fields.get("employee_id", booking.employee_id)

        if booking.is_court_booking and new_employee is not None:
            raise BookingValidationError("Court bookings cannot have an employee")

        timing_changed = (
            new_start != booking.start_at
            or new_duration != booking.duration_minutes
            or new_employee != booking.employee_id
        )

        if timing_changed:
            request = BookingValidationRequest(
                service_id=booking.service_id,
                court_id=booking.court_id,
                employee_id=new_employee,
                duration_minutes=new_duration,
                start_at=new_start,
                session_id=update_data.session_id,
            )
            target, validation = await self.scheduling_engine.check_booking(
                business, request, exclude_booking_id=booking.id
            )
            raise_for_conflicts(validation)

            await self._lock_lane(target)
            await self._ensure_lane_free(
                target, validation.start_at, validation.end_at, exclude_booking_id=booking.id
            )

            if validation.start_at != booking.start_at:
                booking.rescheduled_from = booking.start_at
                booking.reschedule_count += 1
            booking.start_at = validation.start_at
            booking.end_at = validation.end_at
            booking.duration_minutes = validation.duration_minutes
            booking.employee_id = new_employee
            booking.price = validation.price

        if "client_notes" in fields:
            booking.client_notes = update_data.client_notes
        if update_data.paid is not None:
            booking.paid = update_data.paid
        if update_data.payment_method is not None:
            booking.payment_method = update_data.payment_method.value

        if timing_changed:
            await self._commit_booking(target, validation)
        else:
            await self.db.commit()
        await self.db.refresh(booking)

        if timing_changed:
            await self._release_own_hold(
                target, validation.start_at, validation.end_at, update_data.session_id
            )

        logger.info(
            "Booking updated",
            booking_id=booking.id,
            business_id=business.id,
            rescheduled=timing_changed,
        )
        return booking

    async def reschedule_booking(
        self, business: Business, booking_id: int, reschedule_data: BookingReschedule
    ) -> Booking:
        update_data = BookingUpdate(
            start_at=reschedule_data.new_start_at,
            session_id=reschedule_data.session_id,
        )
        return await self.update_booking(business, booking_id, update_data)

    async def transition_booking_status(
        self, business: Business, booking_id: int, transition: BookingStatusTransition
    ) -> Booking:
        """Move a booking along its lifecycle."""
        if transition.new_status == BookingStatus.CANCELLED:
            return await self.cancel_booking(
                business,
                booking_id,
                BookingCancel(cancelled_by=transition.cancelled_by, reason=transition.notes),
            )

        booking = await self.get_booking(business, booking_id)
        if not booking.transition_to(transition.new_status, transition.notes, now=self.clock()):
            raise BookingValidationError(
                f"Cannot transition from {booking.status} to {transition.new_status.value}"
            )

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "Booking status changed",
            booking_id=booking.id,
            previous_status=booking.previous_status,
            status=booking.status,
        )
        return booking

    async def cancel_booking(
        self, business: Business, booking_id: int, cancel_data: BookingCancel
    ) -> Booking:
        """Cancel a booking; client cancellations must respect the cancellation window."""
        booking = await self.get_booking(business, booking_id)
        if not booking.can_transition_to(BookingStatus.CANCELLED):
            raise BookingValidationError(
                f"Booking in status {booking.status} cannot be cancelled"
            )

        if cancel_data.cancelled_by == CancelledBy.CLIENT:
            limit, grace = self._cancellation_window(business)
            can_cancel, reason = booking.cancellation_status(limit, grace, now=self.clock())
            if not can_cancel:
                logger.info(
                    "Client cancellation refused",
                    booking_id=booking.id,
                    reason=reason,
                )
                raise BookingValidationError(reason)

        booking.transition_to(BookingStatus.CANCELLED, cancel_data.reason, now=self.clock())
        booking.cancelled_by = cancel_data.cancelled_by.value

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "Booking cancelled",
            booking_id=booking.id,
            business_id=business.id,
            cancelled_by=booking.cancelled_by,
        )
        return booking

    async def delete_booking(self, business: Business, booking_id: int) -> Booking:
        """Soft delete by cancelling on behalf of the business."""
        return await self.cancel_booking(
            business,
            booking_id,
            BookingCancel(cancelled_by=CancelledBy.BUSINESS, reason="Booking deleted"),
        )

    async def check_cancellation_policy(
        self, business: Business, booking_id: int
    ) -> CancellationPolicyResponse:
        booking = await self.get_booking(business, booking_id)
        limit, grace = self._cancellation_window(business)
        can_cancel, reason = booking.cancellation_status(limit, grace, now=self.clock())

        return CancellationPolicyResponse(
            can_cancel=can_cancel,
            reason=reason,
            cancellation_deadline=booking.start_at - limit,
            reminder_sent_at=booking.reminder_sent_at,
        )

    async def hold_slot(self, business: Business, hold_data: SlotHoldRequest) -> SlotHoldResponse:
        """Hold a free slot for a checkout session."""
        if self.redis is None:
            raise BookingValidationError("Slot holds are not available")

        request = BookingValidationRequest(
            service_id=hold_data.service_id,
            court_id=hold_data.court_id,
            employee_id=hold_data.employee_id,
            duration_minutes=hold_data.duration_minutes,
            start_at=hold_data.start_at,
            session_id=hold_data.session_id,
        )
        target, validation = await self.scheduling_engine.check_booking(
            business, request, with_alternatives=False
        )
        raise_for_conflicts(validation)

        keys = target.hold_keys(validation.start_at, validation.end_at)
        held = await self.redis.acquire_slot_hold(
            keys, hold_data.session_id, settings.SLOT_HOLD_TTL_SECONDS
        )
        if not held:
            raise SlotUnavailableError(
                "The slot is temporarily held by another client",
                conflicts=[ConflictType.SLOT_HELD.value],
            )

        logger.info(
            "Slot held",
            business_id=business.id,
            lane=target.lane_key,
            start_at=validation.start_at.isoformat(),
            session_id=hold_data.session_id,
        )
        return SlotHoldResponse(
            held=True,
            session_id=hold_data.session_id,
            start_at=validation.start_at,
            end_at=validation.end_at,
            expires_in_seconds=settings.SLOT_HOLD_TTL_SECONDS,
            keys=keys,
        )

    async def release_slot(
        self, business: Business, hold_data: SlotHoldRequest
    ) -> SlotReleaseResponse:
        if self.redis is None:
            return SlotReleaseResponse(released=0)

        target = await self.scheduling_engine.resolve_target(business, hold_data)
        start, end = self.scheduling_engine.booking_interval(target, hold_data.start_at)
        released = await self.redis.release_slot_hold(
            target.hold_keys(start, end), hold_data.session_id
        )
        return SlotReleaseResponse(released=released)

    # Helper methods
    def _cancellation_window(self, business: Business) -> tuple[timedelta, timedelta]:
        limit = timedelta(
            hours=business.policy_value(
                "cancellation_limit_hours", settings.CANCELLATION_LIMIT_HOURS
            )
        )
        grace = timedelta(minutes=settings.REMINDER_GRACE_MINUTES)
        return limit, grace

    async def _get_client(self, client_id: int) -> Client:
        client = await self.db.get(Client, client_id)
        if not client:
            raise NotFoundError(f"Client {client_id} not found")
        return client

    async def _lock_lane(self, target: BookingTarget) -> None:
        """Row lock serialising writers of one resource lane until commit."""
        if target.court is not None:
            query = select(Court.id).where(Court.id == target.court.id)
        elif target.employee is not None:
            query = select(Employee.id).where(Employee.id == target.employee.id)
        else:
            query = select(Business.id).where(Business.id == target.business.id)
        await self.db.execute(query.with_for_update())

    async def _ensure_lane_free(
        self,
        target: BookingTarget,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        overlapping = await self.scheduling_engine.find_overlapping_bookings(
            target, start, end, exclude_booking_id
        )
        if overlapping:
            logger.warning(
                "Slot taken while booking",
                lane=target.lane_key,
                start_at=start.isoformat(),
                overlapping=[b.id for b in overlapping],
            )
            raise SlotUnavailableError(
                "The slot was booked by someone else",
                conflicts=[ConflictType.EXISTING_BOOKING.value],
            )

    async def _commit_booking(
        self, target: BookingTarget, validation: BookingValidationResponse
    ) -> None:
        lane = target.lane_key
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Booking insert rejected by database",
                lane=lane,
                start_at=validation.start_at.isoformat(),
                error=str(e.orig),
            )
            raise SlotUnavailableError(
                "The slot is no longer available",
                conflicts=[ConflictType.EXISTING_BOOKING.value],
            )

    async def _release_own_hold(
        self,
        target: BookingTarget,
        start: datetime,
        end: datetime,
        session_id: Optional[str],
    ) -> None:
        if self.redis is None or not session_id:
            return
        await self.redis.release_slot_hold(target.hold_keys(start, end), session_id)
