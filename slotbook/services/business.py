from typing import Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.models.business import Business
from slotbook.models.service import Service
from slotbook.schemas.business import BusinessCreate, BusinessUpdate
from slotbook.services.schedule_rules import resolve_slot_duration

logger = structlog.get_logger(__name__)


class BusinessService:
    """Service layer for business operations."""

    async def create_business(
        self, db: AsyncSession, business_data: BusinessCreate
    ) -> Business:
        """Create a new business."""
        business_dict = business_data.model_dump()
        business_dict["business_type"] = business_data.business_type.value

        business = Business(**business_dict)
        db.add(business)
        await db.commit()
        await db.refresh(business)

        logger.info(
            "Business created successfully",
            business_id=business.id,
            business_name=business.name,
            business_type=business.business_type,
        )
        return business

    async def get_business(
        self, db: AsyncSession, business_id: int
    ) -> Optional[Business]:
        """Get business by ID."""
        result = await db.execute(select(Business).where(Business.id == business_id))
        business = result.scalar_one_or_none()

        if not business:
            logger.warning("Business not found", business_id=business_id)

        return business

    async def update_business(
        self, db: AsyncSession, business: Business, business_update: BusinessUpdate
    ) -> Business:
        """Update business information."""
        update_data = business_update.model_dump(exclude_unset=True)
        if update_data.get("business_type") is not None:
            update_data["business_type"] = update_data["business_type"].value

        for field, value in update_data.items():
            setattr(business, field, value)

        await db.commit()
        await db.refresh(business)

        logger.info(
            "Business updated successfully",
            business_id=business.id,
            updated_fields=list(update_data.keys()),
        )
        return business

    async def set_slot_duration(
        self, db: AsyncSession, business: Business, slot_duration_minutes: Optional[int]
    ) -> Business:
        """Set the booking grid step; None derives it from the services."""
        business.slot_duration_minutes = slot_duration_minutes
        await db.commit()
        await db.refresh(business)

        logger.info(
            "Slot duration updated",
            business_id=business.id,
            slot_duration_minutes=slot_duration_minutes,
        )
        return business

    async def get_resolved_slot_duration(self, db: AsyncSession, business: Business) -> int:
        """Grid step actually used for availability."""
        result = await db.execute(
            select(Service.duration_minutes).where(
                and_(Service.business_id == business.id, Service.is_active)
            )
        )
        return resolve_slot_duration(
            business.slot_duration_minutes, result.scalars().all()
        )
