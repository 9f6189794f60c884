from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.errors import to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.schemas.client import Client, ClientCreate
from slotbook.services.client import client_service

router = APIRouter()


@router.post("/", response_model=Client, status_code=status.HTTP_201_CREATED)
async def create_client(client_data: ClientCreate, db: AsyncSession = Depends(get_db)):
    return await client_service.create_client(db, client_data)


@router.get("/{client_id}", response_model=Client)
async def get_client(client_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await client_service.get_client(db, client_id)
    except BookingError as e:
        raise to_http_exception(e)
