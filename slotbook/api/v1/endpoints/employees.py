from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps.business import BusinessContext, get_business_from_header
from slotbook.api.errors import to_http_exception
from slotbook.core.database import get_db
from slotbook.core.exceptions import BookingError
from slotbook.models.working_hours import OwnerType
from slotbook.schemas.employee import (
    Employee,
    EmployeeCreate,
    EmployeeServiceMapping,
    EmployeeServiceOverride,
    EmployeeUpdate,
)
from slotbook.schemas.schedule import ClosurePeriod, ClosurePeriodCreate, WeeklySchedule
from slotbook.services.employee import EmployeeManagementService
from slotbook.services.schedule import ScheduleService

router = APIRouter()


@router.post("/", response_model=Employee, status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee_data: EmployeeCreate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeManagementService(db).create_employee(
        context.business_id, employee_data
    )


@router.get("/", response_model=List[Employee])
async def list_employees(
    include_inactive: bool = Query(False),
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeManagementService(db).list_employees(
        context.business_id, include_inactive
    )


@router.get("/{employee_id}", response_model=Employee)
async def get_employee(
    employee_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EmployeeManagementService(db).get_employee(
            context.business_id, employee_id
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.patch("/{employee_id}", response_model=Employee)
async def update_employee(
    employee_id: int,
    employee_data: EmployeeUpdate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EmployeeManagementService(db).update_employee(
            context.business_id, employee_id, employee_data
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.delete("/{employee_id}", response_model=Employee)
async def delete_employee(
    employee_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate an employee without active bookings."""
    try:
        return await EmployeeManagementService(db).delete_employee(
            context.business_id, employee_id
        )
    except BookingError as e:
        raise to_http_exception(e)


# Working hours
@router.get("/{employee_id}/working-hours", response_model=WeeklySchedule)
async def get_employee_working_hours(
    employee_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        employee = await EmployeeManagementService(db).get_employee(
            context.business_id, employee_id
        )
    except BookingError as e:
        raise to_http_exception(e)
    return await ScheduleService(db).get_weekly_hours(OwnerType.EMPLOYEE, employee.id)


@router.put("/{employee_id}/working-hours", response_model=WeeklySchedule)
async def set_employee_working_hours(
    employee_id: int,
    schedule: WeeklySchedule,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Replace the employee's weekly hours; they are intersected with the business hours."""
    try:
        employee = await EmployeeManagementService(db).get_employee(
            context.business_id, employee_id
        )
    except BookingError as e:
        raise to_http_exception(e)
    return await ScheduleService(db).set_weekly_hours(
        OwnerType.EMPLOYEE, employee.id, schedule
    )


# Closures
@router.get("/{employee_id}/closures", response_model=List[ClosurePeriod])
async def list_employee_closures(
    employee_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        employee = await EmployeeManagementService(db).get_employee(
            context.business_id, employee_id
        )
    except BookingError as e:
        raise to_http_exception(e)
    return await ScheduleService(db).list_closures(OwnerType.EMPLOYEE, employee.id)


@router.post(
    "/{employee_id}/closures",
    response_model=ClosurePeriod,
    status_code=status.HTTP_201_CREATED,
)
async def create_employee_closure(
    employee_id: int,
    closure_data: ClosurePeriodCreate,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        employee = await EmployeeManagementService(db).get_employee(
            context.business_id, employee_id
        )
        return await ScheduleService(db).create_closure(
            OwnerType.EMPLOYEE, employee.id, closure_data
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.delete(
    "/{employee_id}/closures/{closure_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_employee_closure(
    employee_id: int,
    closure_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        employee = await EmployeeManagementService(db).get_employee(
            context.business_id, employee_id
        )
        await ScheduleService(db).delete_closure(
            OwnerType.EMPLOYEE, employee.id, closure_id
        )
    except BookingError as e:
        raise to_http_exception(e)


# Service overrides
@router.get("/{employee_id}/services", response_model=List[EmployeeServiceMapping])
async def list_employee_services(
    employee_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await EmployeeManagementService(db).list_service_overrides(
            context.business_id, employee_id
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.put(
    "/{employee_id}/services/{service_id}", response_model=EmployeeServiceMapping
)
async def set_employee_service(
    employee_id: int,
    service_id: int,
    override: EmployeeServiceOverride,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    """Offer a service, optionally at the employee's own price or duration."""
    try:
        return await EmployeeManagementService(db).set_service_override(
            context.business_id, employee_id, service_id, override
        )
    except BookingError as e:
        raise to_http_exception(e)


@router.delete(
    "/{employee_id}/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_employee_service(
    employee_id: int,
    service_id: int,
    context: BusinessContext = Depends(get_business_from_header),
    db: AsyncSession = Depends(get_db),
):
    try:
        await EmployeeManagementService(db).remove_service_override(
            context.business_id, employee_id, service_id
        )
    except BookingError as e:
        raise to_http_exception(e)
