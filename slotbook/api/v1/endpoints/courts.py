from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps.business import BusinessContext, get_business_from_header
from slotbook.api.errors import to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.schemas.court import (
    Court,
    CourtCreate,
    CourtDeleteResponse,
    CourtPricing,
    CourtPricingUpdate,
    CourtUpdate,
)
from slotbook.services.court import CourtService

router = APIRouter()


@router.post("/", response_model=Court, status_code=status.HTTP_201_CREATED)
async def create_court(
    court_data: CourtCreate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Add a court; SPORT_OUTDOOR businesses only, numbers are unique per business."""
    try:
        return await CourtService(db).create_court(context.business, court_data)
    except BookingError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[Court])
async def list_courts(
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    return await CourtService(db).list_courts(context.business)


@router.get("/{court_id}", response_model=Court)
async def get_court(
    court_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CourtService(db).get_court(context.business, court_id)
    except BookingError as e:
        raise to_http_exception(e)


@router.patch("/{court_id}", response_model=Court)
async def update_court(
    court_id: int,
    court_data: CourtUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CourtService(db).update_court(context.business, court_id, court_data)
    except BookingError as e:
        raise to_http_exception(e)


@router.delete("/{court_id}", response_model=CourtDeleteResponse)
async def delete_court(
    court_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Delete a court; refused while it has bookings that are not cancelled."""
    try:
        court = await CourtService(db).delete_court(context.business, court_id)
    except BookingError as e:
        raise to_http_exception(e)
    return CourtDeleteResponse(deleted=court is None, court=court)


@router.get("/{court_id}/pricing", response_model=CourtPricing)
async def get_court_pricing(
    court_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        pricing = await CourtService(db).get_pricing(context.business, court_id)
    except BookingError as e:
        raise to_http_exception(e)
    return CourtPricing(pricing=pricing)


@router.put("/{court_id}/pricing", response_model=CourtPricing)
async def replace_court_pricing(
    court_id: int,
    pricing_data: CourtPricingUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Replace the MORNING, AFTERNOON and NIGHT hourly tiers."""
    try:
        pricing = await CourtService(db).replace_pricing(
            context.business, court_id, pricing_data
        )
    except BookingError as e:
        raise to_http_exception(e)
    return CourtPricing(pricing=pricing)
