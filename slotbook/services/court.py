from typing import Optional

import structlog
from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from slotbook.core.exceptions import (
    BookingValidationError,
    NotFoundError,
    ScheduleConflictError,
)
from slotbook.models.booking import Booking, BookingStatus
from slotbook.models.business import Business
from slotbook.models.court import Court, CourtPricing
from slotbook.schemas.court import CourtCreate, CourtPricingUpdate, CourtUpdate

logger = structlog.get_logger(__name__)


class CourtService:
    """Courts of a SPORT_OUTDOOR business and their hourly pricing tiers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_court(self, business: Business, court_data: CourtCreate) -> Court:
        self._require_sport(business)
        await self._ensure_number_free(business.id, court_data.number)

        court = Court(business_id=business.id, **court_data.model_dump())
        self.db.add(court)
        await self.db.commit()

        logger.info(
            "Court created", court_id=court.id, business_id=business.id, number=court.number
        )
        return await self.get_court(business, court.id)

    async def get_court(self, business: Business, court_id: int) -> Court:
        result = await self.db.execute(
            select(Court)
            .options(selectinload(Court.pricing))
            .where(and_(Court.id == court_id, Court.business_id == business.id))
            .execution_options(populate_existing=True)
        )
        court = result.scalar_one_or_none()
        if not court:
            raise NotFoundError(f"Court {court_id} not found")
        return court

    async def list_courts(self, business: Business) -> list[Court]:
        result = await self.db.execute(
            select(Court)
            .options(selectinload(Court.pricing))
            .where(Court.business_id == business.id)
            .order_by(Court.number)
        )
        return list(result.scalars().all())

    async def update_court(
        self, business: Business, court_id: int, court_data: CourtUpdate
    ) -> Court:
        court = await self.get_court(business, court_id)
        update_data = court_data.model_dump(exclude_unset=True)

        if "number" in update_data and update_data["number"] != court.number:
            await self._ensure_number_free(business.id, update_data["number"], court.id)

        for field, value in update_data.items():
            setattr(court, field, value)

        await self.db.commit()
        return await self.get_court(business, court_id)

    async def delete_court(self, business: Business, court_id: int) -> Optional[Court]:
        """Delete a court without bookings.

        Refused while non-cancelled bookings exist. A court that only has
        cancelled bookings is deactivated instead and returned.
        """
        court = await self.get_court(business, court_id)

        counts = await self.db.execute(
            select(Booking.status, func.count(Booking.id))
            .where(Booking.court_id == court.id)
            .group_by(Booking.status)
        )
        by_status = dict(counts.all())
        live = sum(
            count
            for status, count in by_status.items()
            if status != BookingStatus.CANCELLED.value
        )
        if live:
            raise BookingValidationError(
                "A court with bookings cannot be deleted",
                details={"bookings": live},
            )

        if by_status:
            court.is_active = False
            await self.db.commit()
            logger.info("Court deactivated", court_id=court.id, business_id=business.id)
            return await self.get_court(business, court_id)

        await self.db.delete(court)
        await self.db.commit()
        logger.info("Court deleted", court_id=court_id, business_id=business.id)
        return None

    # Pricing
    async def get_pricing(self, business: Business, court_id: int) -> list[CourtPricing]:
        court = await self.get_court(business, court_id)
        return list(court.pricing)

    async def replace_pricing(
        self, business: Business, court_id: int, pricing_data: CourtPricingUpdate
    ) -> list[CourtPricing]:
        """Replace all three pricing tiers of a court."""
        court = await self.get_court(business, court_id)

        await self.db.execute(delete(CourtPricing).where(CourtPricing.court_id == court.id))
        for tier in pricing_data.pricing:
            self.db.add(
                CourtPricing(
                    court_id=court.id,
                    time_slot=tier.time_slot.value,
                    price=tier.price,
                    start_hour=tier.start_hour,
                    end_hour=tier.end_hour,
                )
            )
        await self.db.commit()

        logger.info(
            "Court pricing replaced",
            court_id=court.id,
            tiers={t.time_slot.value: f"{t.start_hour}-{t.end_hour}" for t in pricing_data.pricing},
        )
        return await self.get_pricing(business, court_id)

    # Helper methods
    @staticmethod
    def _require_sport(business: Business) -> None:
        if not business.is_sport:
            raise BookingValidationError(
                "Courts can only be added to SPORT_OUTDOOR businesses"
            )

    async def _ensure_number_free(
        self, business_id: int, number: int, exclude_court_id: Optional[int] = None
    ) -> None:
        query = select(Court.id).where(
            and_(Court.business_id == business_id, Court.number == number)
        )
        if exclude_court_id is not None:
            query = query.where(Court.id != exclude_court_id)
        if (await self.db.execute(query)).first() is not None:
            raise ScheduleConflictError(f"Court number {number} already exists")
