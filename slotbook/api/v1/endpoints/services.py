from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps.business import BusinessContext, get_business_from_header
from slotbook.api.errors import to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.schemas.service import Service, ServiceCreate, ServiceUpdate
from slotbook.services.service import ServiceCatalogService

router = APIRouter()


@router.post("/", response_model=Service, status_code=status.HTTP_201_CREATED)
async def create_service(
    service_data: ServiceCreate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Create a service; duration must be a positive multiple of 15 minutes."""
    return await ServiceCatalogService.create_service(db, context.business_id, service_data)


@router.get("/", response_model=List[Service])
async def list_services(
    include_inactive: bool = Query(False),
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    return await ServiceCatalogService.get_services(
        db, context.business_id, include_inactive
    )


@router.get("/{service_id}", response_model=Service)
async def get_service(
    service_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await ServiceCatalogService.get_service(db, context.business_id, service_id)
    except BookingError as e:
        raise to_http_exception(e)


@router.patch("/{service_id}", response_model=Service)
async def update_service(
    service_id: int,
    service_data: ServiceUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await ServiceCatalogService.update_service(
            db, context.business_id, service_id, service_data
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.delete("/{service_id}", response_model=Service)
async def delete_service(
    service_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a service; existing bookings keep it."""
    try:
        return await ServiceCatalogService.delete_service(
            db, context.business_id, service_id
        )
    except BookingError as e:
        raise to_http_exception(e)
