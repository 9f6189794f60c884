import uuid

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from slotbook.core.database import Base, UTCDateTime


class Employee(Base):
    """Bookable person working for a business."""

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    bio = Column(Text, nullable=True)

    is_bookable = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="employees")
    service_overrides = relationship(
        "EmployeeService", back_populates="employee", cascade="all, delete-orphan"
    )

    @property
    def can_take_bookings(self) -> bool:
        return bool(self.is_active and self.is_bookable)

    def __repr__(self):
        return (
            f"<Employee(id={self.id}, name='{self.name}', "
            f"bookable={self.is_bookable})>"
        )


class EmployeeService(Base):
    """Employee offers a service, optionally at its own price or duration."""

    __tablename__ = "employee_services"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    price_override = Column(Numeric(10, 2), nullable=True)
    duration_override_minutes = Column(Integer, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("employee_id", "service_id", name="uq_employee_service"),
    )

    employee = relationship("Employee", back_populates="service_overrides")
    service = relationship("Service")

