import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.exceptions import BookingValidationError, NotFoundError
from slotbook.models.booking import ACTIVE_STATUSES, Booking
from slotbook.models.employee import Employee, EmployeeService
from slotbook.models.service import Service
from slotbook.schemas.employee import (
    EmployeeCreate,
    EmployeeServiceOverride,
    EmployeeUpdate,
)

logger = structlog.get_logger(__name__)


class EmployeeManagementService:
    """Employees of a business and the services they offer."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_employee(self, business_id: int, employee_data: EmployeeCreate) -> Employee:
        employee = Employee(business_id=business_id, **employee_data.model_dump())
        self.db.add(employee)
        await self.db.commit()
        await self.db.refresh(employee)

        logger.info("Employee created", employee_id=employee.id, business_id=business_id)
        return employee

    async def get_employee(self, business_id: int, employee_id: int) -> Employee:
        result = await self.db.execute(
            select(Employee).where(
                and_(Employee.id == employee_id, Employee.business_id == business_id)
            )
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    async def list_employees(
        self, business_id: int, include_inactive: bool = False
    ) -> list[Employee]:
        query = select(Employee).where(Employee.business_id == business_id)
        if not include_inactive:
            query = query.where(Employee.is_active)
        result = await self.db.execute(query.order_by(Employee.name))
        return list(result.scalars().all())

    async def update_employee(
        self, business_id: int, employee_id: int, employee_data: EmployeeUpdate
    ) -> Employee:
        employee = await self.get_employee(business_id, employee_id)
        for field, value in employee_data.model_dump(exclude_unset=True).items():
            setattr(employee, field, value)

        await self.db.commit()
        await self.db.refresh(employee)
        return employee

    async def delete_employee(self, business_id: int, employee_id: int) -> Employee:
        """Soft delete: the employee keeps their booking history but stops taking bookings.

        Refused while the employee still has active bookings.
        """
        employee = await self.get_employee(business_id, employee_id)

        active_count = (
            await self.db.execute(
                select(func.count(Booking.id)).where(
                    and_(
                        Booking.employee_id == employee.id,
                        Booking.status.in_(ACTIVE_STATUSES),
                    )
                )
            )
        ).scalar()
        if active_count:
            raise BookingValidationError(
                f"Employee has {active_count} active bookings and cannot be removed"
            )

        employee.is_active = False
        employee.is_bookable = False
        await self.db.commit()
        await self.db.refresh(employee)

        logger.info("Employee deactivated", employee_id=employee.id, business_id=business_id)
        return employee

    # Service overrides
    async def set_service_override(
        self,
        business_id: int,
        employee_id: int,
        service_id: int,
        override: EmployeeServiceOverride,
    ) -> EmployeeService:
        """Mark that the employee offers a service, with optional price/duration overrides."""
        employee = await self.get_employee(business_id, employee_id)
        await self._get_service(business_id, service_id)

        result = await self.db.execute(
            select(EmployeeService).where(
                and_(
                    EmployeeService.employee_id == employee.id,
                    EmployeeService.service_id == service_id,
                )
            )
        )
        mapping = result.scalar_one_or_none()
        if mapping:
            mapping.price_override = override.price_override
            mapping.duration_override_minutes = override.duration_override_minutes
        else:
            mapping = EmployeeService(
                employee_id=employee.id,
                service_id=service_id,
                **override.model_dump(),
            )
            self.db.add(mapping)

        await self.db.commit()
        await self.db.refresh(mapping)

        logger.info(
            "Employee service override set",
            employee_id=employee.id,
            service_id=service_id,
            price_override=str(override.price_override),
            duration_override_minutes=override.duration_override_minutes,
        )
        return mapping

    async def remove_service_override(
        self, business_id: int, employee_id: int, service_id: int
    ) -> None:
        employee = await self.get_employee(business_id, employee_id)
        result = await self.db.execute(
            select(EmployeeService).where(
                and_(
                    EmployeeService.employee_id == employee.id,
                    EmployeeService.service_id == service_id,
                )
            )
        )
        mapping = result.scalar_one_or_none()
        if not mapping:
            raise NotFoundError(
                f"Employee {employee_id} has no mapping for service {service_id}"
            )

        await self.db.delete(mapping)
        await self.db.commit()

    async def list_service_overrides(
        self, business_id: int, employee_id: int
    ) -> list[EmployeeService]:
        employee = await self.get_employee(business_id, employee_id)
        result = await self.db.execute(
            select(EmployeeService)
            .where(EmployeeService.employee_id == employee.id)
            .order_by(EmployeeService.service_id)
        )
        return list(result.scalars().all())

    async def _get_service(self, business_id: int, service_id: int) -> Service:
        result = await self.db.execute(
            select(Service).where(
                and_(Service.id == service_id, Service.business_id == business_id)
            )
        )
        service = result.scalar_one_or_none()
        if not service:
            raise NotFoundError(f"Service {service_id} not found")
        return service
