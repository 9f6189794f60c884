from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.database import utcnow
from slotbook.core.exceptions import BookingValidationError, NotFoundError
from slotbook.core.redis import RedisClient
from slotbook.models.booking import Booking, BookingStatus
from slotbook.models.business import Business
from slotbook.models.closure import ClosurePeriod
from slotbook.models.court import Court, CourtPricing
from slotbook.models.employee import Employee, EmployeeService
from slotbook.models.service import Service
from slotbook.models.working_hours import OwnerType, WorkingHours
from slotbook.schemas.availability import (
    AvailabilityQuery,
    AvailabilitySlot,
    AvailableDaysQuery,
    AvailableDaysResponse,
    BookingValidationRequest,
    BookingValidationResponse,
    ConflictType,
    DayAvailability,
    SchedulingConflict,
    SlotStatus,
    TargetQuery,
)
from slotbook.services import schedule_rules as rules
from slotbook.services.holidays import HolidayService

logger = structlog.get_logger(__name__)


CONFLICT_MESSAGES = {
    ConflictType.OUTSIDE_WORKING_HOURS: "Booking time is outside working hours",
    ConflictType.CLOSED: "The business or employee is closed on this date",
    ConflictType.EXISTING_BOOKING: "The slot overlaps an existing booking",
    ConflictType.PAST: "Booking time is in the past",
    ConflictType.LEAD_TIME_VIOLATION: "Booking does not meet the minimum lead time",
    ConflictType.ADVANCE_BOOKING_VIOLATION: "Booking exceeds the maximum advance booking period",
    ConflictType.SLOT_HELD: "The slot is temporarily held by another client",
    ConflictType.RESOURCE_INACTIVE: "The selected service, employee or court is not bookable",
}


@dataclass
class BookingTarget:
    """Resolved resources behind a booking request."""

    business: Business
    tz: ZoneInfo
    duration_minutes: int
    step_minutes: int
    service: Optional[Service] = None
    court: Optional[Court] = None
    employee: Optional[Employee] = None
    employee_service: Optional[EmployeeService] = None
    pricing: list[CourtPricing] = field(default_factory=list)

    @property
    def lane_key(self) -> str:
        if self.court is not None:
            return f"court-{self.court.id}"
        if self.employee is not None:
            return f"employee-{self.employee.id}"
        return "business"

    @property
    def is_inactive(self) -> bool:
        if self.court is not None and not self.court.is_active:
            return True
        if self.service is not None and not self.service.is_active:
            return True
        if self.employee is not None and not self.employee.can_take_bookings:
            return True
        return False

    def price_for(self, local_start: datetime) -> Decimal:
        if self.court is not None:
            return rules.court_price(self.pricing, local_start, self.duration_minutes)
        if self.employee_service is not None and self.employee_service.price_override is not None:
            return Decimal(self.employee_service.price_override)
        return Decimal(self.service.price)

    def time_slot_for(self, local_start: datetime) -> Optional[str]:
        if self.court is None:
            return None
        tier = rules.tier_for_hour(self.pricing, local_start.hour)
        return tier.time_slot if tier is not None else None

    def hold_keys(self, start: datetime, end: datetime) -> list[str]:
        return [
            f"slot_hold:{self.business.id}:{self.lane_key}:{cell.isoformat()}"
            for cell in rules.hold_cells(start, end)
        ]


@dataclass
class ScheduleWindow:
    """Schedule data loaded once for a range of local days."""

    business_hours: list[WorkingHours]
    employee_hours: list[WorkingHours]
    closures: list[ClosurePeriod]
    bookings: list[tuple[int, datetime, datetime]]
    holiday_country: Optional[str] = None

    def intervals(self, day: date) -> list[rules.Interval]:
        business = rules.day_intervals(self.business_hours, day)
        if not self.employee_hours:
            return business
        return rules.intersect_intervals(
            rules.day_intervals(self.employee_hours, day), business
        )

    def is_closed(self, start: datetime, end: datetime, tz: ZoneInfo) -> bool:
        if rules.closure_blocks(self.closures, start, end, tz):
            return True
        if self.holiday_country:
            first, last = rules.local_dates_spanned(start, end, tz)
            day = first
            while day <= last:
                if HolidayService.is_holiday(self.holiday_country, day):
                    return True
                day += timedelta(days=1)
        return False

    def overlapping_booking_ids(
        self, start: datetime, end: datetime, exclude_booking_id: Optional[int] = None
    ) -> list[int]:
        return [
            booking_id
            for booking_id, b_start, b_end in self.bookings
            if booking_id != exclude_booking_id
            and rules.overlaps(start, end, b_start, b_end)
        ]


class SchedulingEngineService:
    """Availability and conflict engine for service and court bookings."""

    def __init__(
        self,
        db: AsyncSession,
        redis: Optional[RedisClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.redis = redis
        self.clock = clock or utcnow

    async def resolve_target(self, business: Business, query: TargetQuery) -> BookingTarget:
        """Load and check the service/employee or court a query refers to."""
        tz = ZoneInfo(business.timezone)

        if query.court_id is not None:
            if not business.is_sport:
                raise BookingValidationError(
                    "Courts can only be booked at SPORT_OUTDOOR businesses"
                )
            court = await self._get_court(business.id, query.court_id)
            duration = query.duration_minutes or rules.COURT_SLOT_MINUTES
            if duration % rules.COURT_SLOT_MINUTES != 0:
                raise BookingValidationError("Court bookings must last whole hours")
            pricing = await self._get_court_pricing(court.id)
            return BookingTarget(
                business=business,
                tz=tz,
                duration_minutes=duration,
                step_minutes=rules.COURT_SLOT_MINUTES,
                court=court,
                pricing=pricing,
            )

        service = await self._get_service(business.id, query.service_id)
        employee = None
        employee_service = None
        if query.employee_id is not None:
            employee = await self._get_employee(business.id, query.employee_id)
            employee_service = await self._get_employee_service(employee.id, service.id)

        duration = (
            query.duration_minutes
            or (employee_service.duration_override_minutes if employee_service else None)
            or service.duration_minutes
        )
        step = rules.resolve_slot_duration(
            business.slot_duration_minutes, await self._active_service_durations(business.id)
        )

        return BookingTarget(
            business=business,
            tz=tz,
            duration_minutes=duration,
            step_minutes=step,
            service=service,
            employee=employee,
            employee_service=employee_service,
        )

    async def load_window(self, target: BookingTarget, first: date, last: date) -> ScheduleWindow:
        """Load working hours, closures and lane bookings for local days first..last."""
        business = target.business
        # One extra day so bookings crossing midnight are seen.
        window_start, window_end = rules.day_window(first, last + timedelta(days=1), target.tz)

        business_hours = await self._get_working_hours(OwnerType.BUSINESS, business.id)
        employee_hours = []
        closure_owners = [(OwnerType.BUSINESS, business.id)]
        if target.employee is not None:
            employee_hours = await self._get_working_hours(
                OwnerType.EMPLOYEE, target.employee.id
            )
            closure_owners.append((OwnerType.EMPLOYEE, target.employee.id))

        closures = await self._get_closures(
            closure_owners, first - timedelta(days=1), last + timedelta(days=1)
        )

        query = select(Booking.id, Booking.start_at, Booking.end_at).where(
            and_(
                self._lane_clause(target),
                Booking.status != BookingStatus.CANCELLED.value,
                Booking.start_at < window_end,
                Booking.end_at > window_start,
            )
        )
        result = await self.db.execute(query)
        bookings = [(row.id, row.start_at, row.end_at) for row in result.all()]

        logger.debug(
            "Schedule window loaded",
            business_id=business.id,
            lane=target.lane_key,
            first=first.isoformat(),
            last=last.isoformat(),
            bookings=len(bookings),
            closures=len(closures),
        )

        return ScheduleWindow(
            business_hours=business_hours,
            employee_hours=employee_hours,
            closures=closures,
            bookings=bookings,
            holiday_country=business.public_holiday_country,
        )

    def evaluate(
        self,
        target: BookingTarget,
        window: ScheduleWindow,
        start: datetime,
        end: datetime,
        now: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[ConflictType]:
        """Every conflict for [start, end) except slot holds."""
        conflicts = []
        business = target.business

        if target.is_inactive:
            conflicts.append(ConflictType.RESOURCE_INACTIVE)

        local_start = rules.to_local(start, target.tz)
        if not rules.fits_working_hours(
            local_start, target.duration_minutes, window.intervals(local_start.date())
        ):
            conflicts.append(ConflictType.OUTSIDE_WORKING_HOURS)

        if window.is_closed(start, end, target.tz):
            conflicts.append(ConflictType.CLOSED)

        conflicts.extend(
            rules.timing_conflicts(
                start,
                now,
                timedelta(
                    minutes=business.policy_value(
                        "min_lead_minutes", settings.MIN_BOOKING_LEAD_MINUTES
                    )
                ),
                business.policy_value("max_advance_days", settings.MAX_ADVANCE_BOOKING_DAYS),
            )
        )

        if window.overlapping_booking_ids(start, end, exclude_booking_id):
            conflicts.append(ConflictType.EXISTING_BOOKING)

        return conflicts

    def _day_slots(
        self,
        target: BookingTarget,
        window: ScheduleWindow,
        day: date,
        now: datetime,
    ) -> list[AvailabilitySlot]:
        slots = []
        starts = rules.generate_slot_starts(
            day, window.intervals(day), target.step_minutes, target.duration_minutes
        )
        for local_start in starts:
            start = rules.localize(local_start, target.tz)
            end = rules.localize(
                local_start + timedelta(minutes=target.duration_minutes), target.tz
            )
            conflicts = self.evaluate(target, window, start, end, now)
            slots.append(
                AvailabilitySlot(
                    start_at=start,
                    end_at=end,
                    local_time=local_start.strftime("%H:%M"),
                    status=rules.slot_status(conflicts),
                    price=target.price_for(local_start),
                    time_slot=target.time_slot_for(local_start),
                    conflicts=conflicts,
                )
            )
        return slots

    async def _mark_held(
        self,
        target: BookingTarget,
        slots: list[AvailabilitySlot],
        session_id: Optional[str],
    ) -> None:
        if self.redis is None or not slots:
            return

        keys_by_slot = [target.hold_keys(slot.start_at, slot.end_at) for slot in slots]
        holders = await self.redis.slot_holders(
            sorted({key for keys in keys_by_slot for key in keys})
        )
        if not holders:
            return

        for slot, keys in zip(slots, keys_by_slot):
            if any(key in holders and holders[key] != session_id for key in keys):
                slot.conflicts.append(ConflictType.SLOT_HELD)
                slot.status = rules.slot_status(slot.conflicts)

    async def get_day_availability(
        self, business: Business, query: AvailabilityQuery
    ) -> DayAvailability:
        """Slots of one local day for a service/employee or a court."""
        target = await self.resolve_target(business, query)
        window = await self.load_window(target, query.day, query.day)
        now = self.clock()

        slots = self._day_slots(target, window, query.day, now)
        await self._mark_held(target, slots, query.session_id)

        available = sum(1 for slot in slots if slot.status == SlotStatus.AVAILABLE)
        logger.info(
            "Availability computed",
            business_id=business.id,
            lane=target.lane_key,
            day=query.day.isoformat(),
            total_slots=len(slots),
            available_slots=available,
        )

        if not query.include_unavailable:
            slots = [slot for slot in slots if slot.status == SlotStatus.AVAILABLE]

        day_start, day_end = rules.day_window(query.day, query.day, target.tz)
        is_open = bool(window.intervals(query.day)) and not window.is_closed(
            day_start, day_end, target.tz
        )

        return DayAvailability(
            day=query.day,
            timezone=business.timezone,
            slot_duration_minutes=target.step_minutes,
            duration_minutes=target.duration_minutes,
            is_open=is_open,
            holiday=HolidayService.get_holiday_name(
                business.public_holiday_country, query.day
            ),
            slots=slots,
        )

    async def get_available_days(
        self, business: Business, query: AvailableDaysQuery
    ) -> AvailableDaysResponse:
        """Days in an inclusive range with at least one available slot."""
        span = (query.end_date - query.start_date).days + 1
        if span > settings.MAX_AVAILABILITY_DAYS:
            raise BookingValidationError(
                f"Date range cannot exceed {settings.MAX_AVAILABILITY_DAYS} days"
            )

        target = await self.resolve_target(business, query)
        window = await self.load_window(target, query.start_date, query.end_date)
        now = self.clock()

        available_days = []
        day = query.start_date
        while day <= query.end_date:
            if any(
                slot.status == SlotStatus.AVAILABLE
                for slot in self._day_slots(target, window, day, now)
            ):
                available_days.append(day)
            day += timedelta(days=1)

        logger.info(
            "Available days computed",
            business_id=business.id,
            lane=target.lane_key,
            checked_days=span,
            available_days=len(available_days),
        )
        return AvailableDaysResponse(
            start_date=query.start_date,
            end_date=query.end_date,
            available_days=available_days,
        )

    async def check_booking(
        self,
        business: Business,
        request: BookingValidationRequest,
        exclude_booking_id: Optional[int] = None,
        with_alternatives: bool = True,
    ) -> tuple[BookingTarget, BookingValidationResponse]:
        """Validate a requested booking and return the resolved target with the verdict."""
        target = await self.resolve_target(business, request)
        start, end = self.booking_interval(target, request.start_at)
        local_start = rules.to_local(start, target.tz)
        first, last = rules.local_dates_spanned(start, end, target.tz)
        window = await self.load_window(target, first, last)
        now = self.clock()

        conflicts = self.evaluate(target, window, start, end, now, exclude_booking_id)

        if self.redis is not None:
            holders = await self.redis.slot_holders(target.hold_keys(start, end))
            if any(holder != request.session_id for holder in holders.values()):
                conflicts.append(ConflictType.SLOT_HELD)

        alternatives = []
        if conflicts and with_alternatives:
            alternatives = await self._find_alternative_slots(target, start, now)

        response = BookingValidationResponse(
            is_valid=not conflicts,
            conflicts=[
                SchedulingConflict(conflict_type=c, message=CONFLICT_MESSAGES[c])
                for c in conflicts
            ],
            alternative_slots=alternatives,
            start_at=start,
            end_at=end,
            duration_minutes=target.duration_minutes,
            price=target.price_for(local_start),
        )

        if conflicts:
            logger.info(
                "Booking request rejected",
                business_id=business.id,
                lane=target.lane_key,
                start_at=start.isoformat(),
                conflicts=[c.value for c in conflicts],
            )
        return target, response

    @staticmethod
    def booking_interval(target: BookingTarget, start_at: datetime) -> tuple[datetime, datetime]:
        """UTC start and end of a booking; the end is computed on the local wall clock."""
        start = rules.ensure_aware(start_at, target.tz)
        local_start = rules.to_local(start, target.tz)

        if target.court is not None and (local_start.minute or local_start.second):
            raise BookingValidationError("Court bookings must start on the hour")

        end = rules.localize(
            local_start + timedelta(minutes=target.duration_minutes), target.tz
        )
        return start, end

    async def validate_booking(
        self,
        business: Business,
        request: BookingValidationRequest,
        exclude_booking_id: Optional[int] = None,
    ) -> BookingValidationResponse:
        _, response = await self.check_booking(business, request, exclude_booking_id)
        return response

    async def _find_alternative_slots(
        self, target: BookingTarget, preferred: datetime, now: datetime
    ) -> list[AvailabilitySlot]:
        """Available slots closest to the preferred start within the search window."""
        first = rules.to_local(max(preferred, now), target.tz).date()
        last = first + timedelta(days=settings.ALTERNATIVE_SEARCH_DAYS - 1)
        window = await self.load_window(target, first, last)

        candidates = []
        day = first
        while day <= last:
            candidates.extend(
                slot
                for slot in self._day_slots(target, window, day, now)
                if slot.status == SlotStatus.AVAILABLE
            )
            day += timedelta(days=1)

        await self._mark_held(target, candidates, None)
        candidates = [slot for slot in candidates if slot.status == SlotStatus.AVAILABLE]
        candidates.sort(key=lambda slot: abs(slot.start_at - preferred))
        return sorted(
            candidates[: settings.ALTERNATIVE_SLOTS_LIMIT], key=lambda slot: slot.start_at
        )

    async def find_overlapping_bookings(
        self,
        target: BookingTarget,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        """Non-cancelled bookings in the target's lane overlapping [start, end)."""
        query = select(Booking).where(
            and_(
                self._lane_clause(target),
                Booking.status != BookingStatus.CANCELLED.value,
                Booking.start_at < end,
                Booking.end_at > start,
            )
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # Helper methods
    @staticmethod
    def _lane_clause(target: BookingTarget):
        if target.court is not None:
            return Booking.court_id == target.court.id
        if target.employee is not None:
            return Booking.employee_id == target.employee.id
        return and_(
            Booking.business_id == target.business.id,
            Booking.employee_id.is_(None),
            Booking.court_id.is_(None),
        )

    async def _get_service(self, business_id: int, service_id: int) -> Service:
        result = await self.db.execute(
            select(Service).where(
                and_(Service.id == service_id, Service.business_id == business_id)
            )
        )
        service = result.scalar_one_or_none()
        if not service:
            raise NotFoundError(f"Service {service_id} not found")
        return service

    async def _get_employee(self, business_id: int, employee_id: int) -> Employee:
        result = await self.db.execute(
            select(Employee).where(
                and_(Employee.id == employee_id, Employee.business_id == business_id)
            )
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    async def _get_employee_service(
        self, employee_id: int, service_id: int
    ) -> Optional[EmployeeService]:
        """Mapping of employee to service; an employee with mappings only offers those."""
        result = await self.db.execute(
            select(EmployeeService).where(EmployeeService.employee_id == employee_id)
        )
        mappings = result.scalars().all()
        if not mappings:
            return None
        for mapping in mappings:
            if mapping.service_id == service_id:
                return mapping
        raise BookingValidationError(
            f"Employee {employee_id} does not offer service {service_id}"
        )

    async def _get_court(self, business_id: int, court_id: int) -> Court:
        result = await self.db.execute(
            select(Court).where(and_(Court.id == court_id, Court.business_id == business_id))
        )
        court = result.scalar_one_or_none()
        if not court:
            raise NotFoundError(f"Court {court_id} not found")
        return court

    async def _get_court_pricing(self, court_id: int) -> list[CourtPricing]:
        result = await self.db.execute(
            select(CourtPricing)
            .where(CourtPricing.court_id == court_id)
            .order_by(CourtPricing.start_hour)
        )
        return list(result.scalars().all())

    async def _active_service_durations(self, business_id: int) -> list[int]:
        result = await self.db.execute(
            select(Service.duration_minutes).where(
                and_(Service.business_id == business_id, Service.is_active)
            )
        )
        return list(result.scalars().all())

    async def _get_working_hours(self, owner_type: OwnerType, owner_id: int) -> list[WorkingHours]:
        result = await self.db.execute(
            select(WorkingHours).where(
                and_(
                    WorkingHours.owner_type == owner_type.value,
                    WorkingHours.owner_id == owner_id,
                )
            )
        )
        return list(result.scalars().all())

    async def _get_closures(
        self, owners: list[tuple[OwnerType, int]], first: date, last: date
    ) -> list[ClosurePeriod]:
        owner_clauses = [
            and_(ClosurePeriod.owner_type == owner_type.value, ClosurePeriod.owner_id == owner_id)
            for owner_type, owner_id in owners
        ]
        result = await self.db.execute(
            select(ClosurePeriod).where(
                and_(
                    or_(*owner_clauses),
                    ClosurePeriod.start_date <= last,
                    ClosurePeriod.end_date >= first,
                )
            )
        )
        return list(result.scalars().all())
