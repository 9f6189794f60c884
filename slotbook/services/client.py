import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.exceptions import NotFoundError
from slotbook.models.client import Client
from slotbook.schemas.client import ClientCreate

logger = structlog.get_logger(__name__)


class ClientService:
    """Clients booking appointments."""

    async def create_client(self, db: AsyncSession, client_data: ClientCreate) -> Client:
        client = Client(**client_data.model_dump())
        db.add(client)
        await db.commit()
        await db.refresh(client)

        logger.info("Client created", client_id=client.id)
        return client

    async def get_client(self, db: AsyncSession, client_id: int) -> Client:
        client = await db.get(Client, client_id)
        if not client:
            raise NotFoundError(f"Client {client_id} not found")
        return client


client_service = ClientService()
