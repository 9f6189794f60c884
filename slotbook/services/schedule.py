from collections import defaultdict

import structlog
from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.exceptions import NotFoundError, ScheduleConflictError
from slotbook.models.closure import ClosurePeriod
from slotbook.models.working_hours import OwnerType, WeekDay, WorkingHours
from slotbook.schemas.schedule import (
    ClosurePeriodCreate,
    DaySchedule,
    TimeRange,
    WeeklySchedule,
)
from slotbook.services.schedule_rules import format_clock, parse_clock

logger = structlog.get_logger(__name__)


class ScheduleService:
    """Weekly working hours and closure periods of a business or employee."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Working Hours Management
    async def set_weekly_hours(
        self, owner_type: OwnerType, owner_id: int, schedule: WeeklySchedule
    ) -> WeeklySchedule:
        """Replace the owner's working hours with ``schedule``."""
        await self.db.execute(
            delete(WorkingHours).where(
                and_(
                    WorkingHours.owner_type == owner_type.value,
                    WorkingHours.owner_id == owner_id,
                )
            )
        )

        row_count = 0
        for day, slots in schedule.enabled_days().items():
            for slot in slots:
                self.db.add(
                    WorkingHours(
                        owner_type=owner_type.value,
                        owner_id=owner_id,
                        weekday=day.upper(),
                        start_time=parse_clock(slot.start),
                        end_time=parse_clock(slot.end),
                    )
                )
                row_count += 1

        await self.db.commit()

        logger.info(
            "Working hours replaced",
            owner_type=owner_type.value,
            owner_id=owner_id,
            intervals=row_count,
        )
        return await self.get_weekly_hours(owner_type, owner_id)

    async def get_weekly_hours(self, owner_type: OwnerType, owner_id: int) -> WeeklySchedule:
        result = await self.db.execute(
            select(WorkingHours)
            .where(
                and_(
                    WorkingHours.owner_type == owner_type.value,
                    WorkingHours.owner_id == owner_id,
                )
            )
            .order_by(WorkingHours.start_time)
        )

        by_day = defaultdict(list)
        for row in result.scalars().all():
            by_day[row.weekday].append(
                TimeRange(start=format_clock(row.start_time), end=format_clock(row.end_time))
            )

        return WeeklySchedule(
            **{
                day.name.lower(): DaySchedule(
                    enabled=bool(by_day.get(day.name)), slots=by_day.get(day.name, [])
                )
                for day in WeekDay
            }
        )

    # Closure Management
    async def list_closures(self, owner_type: OwnerType, owner_id: int) -> list[ClosurePeriod]:
        result = await self.db.execute(
            select(ClosurePeriod)
            .where(
                and_(
                    ClosurePeriod.owner_type == owner_type.value,
                    ClosurePeriod.owner_id == owner_id,
                )
            )
            .order_by(ClosurePeriod.start_date)
        )
        return list(result.scalars().all())

    async def create_closure(
        self, owner_type: OwnerType, owner_id: int, closure_data: ClosurePeriodCreate
    ) -> ClosurePeriod:
        """Add a closure period; periods of one owner never overlap."""
        result = await self.db.execute(
            select(ClosurePeriod).where(
                and_(
                    ClosurePeriod.owner_type == owner_type.value,
                    ClosurePeriod.owner_id == owner_id,
                    ClosurePeriod.start_date <= closure_data.end_date,
                    ClosurePeriod.end_date >= closure_data.start_date,
                )
            )
        )
        existing = result.scalars().first()
        if existing:
            raise ScheduleConflictError(
                f"Closure overlaps the existing period "
                f"{existing.start_date.isoformat()} - {existing.end_date.isoformat()}",
                details={"closure_id": existing.id},
            )

        closure = ClosurePeriod(
            owner_type=owner_type.value,
            owner_id=owner_id,
            start_date=closure_data.start_date,
            end_date=closure_data.end_date,
            reason=closure_data.reason,
        )
        self.db.add(closure)
        await self.db.commit()
        await self.db.refresh(closure)

        logger.info(
            "Closure period created",
            owner_type=owner_type.value,
            owner_id=owner_id,
            start_date=closure.start_date.isoformat(),
            end_date=closure.end_date.isoformat(),
        )
        return closure

    async def delete_closure(
        self, owner_type: OwnerType, owner_id: int, closure_id: int
    ) -> None:
        result = await self.db.execute(
            select(ClosurePeriod).where(
                and_(
                    ClosurePeriod.id == closure_id,
                    ClosurePeriod.owner_type == owner_type.value,
                    ClosurePeriod.owner_id == owner_id,
                )
            )
        )
        closure = result.scalar_one_or_none()
        if not closure:
            raise NotFoundError(f"Closure period {closure_id} not found")

        await self.db.delete(closure)
        await self.db.commit()
        logger.info("Closure period deleted", closure_id=closure_id, owner_id=owner_id)
