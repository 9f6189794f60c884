import uuid

from sqlalchemy import Column, Integer, String, Uuid
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime


class Client(Base):
    """Person booking appointments; clients are shared across businesses."""

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}')>"
