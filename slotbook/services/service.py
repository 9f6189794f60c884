import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.exceptions import NotFoundError
from slotbook.models.service import Service
from slotbook.schemas.service import ServiceCreate, ServiceUpdate

logger = structlog.get_logger(__name__)


class ServiceCatalogService:
    """Services a salon or clinic offers."""

    @staticmethod
    async def create_service(
        db: AsyncSession, business_id: int, service_data: ServiceCreate
    ) -> Service:
        service = Service(business_id=business_id, **service_data.model_dump())
        db.add(service)
        await db.commit()
        await db.refresh(service)

        logger.info(
            "Service created",
            service_id=service.id,
            business_id=business_id,
            duration_minutes=service.duration_minutes,
        )
        return service

    @staticmethod
    async def get_service(db: AsyncSession, business_id: int, service_id: int) -> Service:
        result = await db.execute(
            select(Service).where(
                and_(Service.id == service_id, Service.business_id == business_id)
            )
        )
        service = result.scalar_one_or_none()
        if not service:
            raise NotFoundError(f"Service {service_id} not found")
        return service

    @staticmethod
    async def get_services(
        db: AsyncSession, business_id: int, include_inactive: bool = False
    ) -> list[Service]:
        query = select(Service).where(Service.business_id == business_id)
        if not include_inactive:
            query = query.where(Service.is_active)
        result = await db.execute(query.order_by(Service.name))
        return list(result.scalars().all())

    @staticmethod
    async def update_service(
        db: AsyncSession, business_id: int, service_id: int, service_data: ServiceUpdate
    ) -> Service:
        service = await ServiceCatalogService.get_service(db, business_id, service_id)
        for field, value in service_data.model_dump(exclude_unset=True).items():
            setattr(service, field, value)

        await db.commit()
        await db.refresh(service)
        return service

    @staticmethod
    async def delete_service(db: AsyncSession, business_id: int, service_id: int) -> Service:
        """Soft delete so past bookings keep their service."""
        service = await ServiceCatalogService.get_service(db, business_id, service_id)
        service.is_active = False
        await db.commit()
        await db.refresh(service)

        logger.info("Service deactivated", service_id=service.id, business_id=business_id)
        return service
