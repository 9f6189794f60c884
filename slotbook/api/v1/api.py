from fastapi import APIRouter

from slotbook.api.v1.endpoints import (
    bookings,
    business,
    clients,
    courts,
    employees,
    scheduling,
    services,
)

api_router = APIRouter()

# Business management endpoints
api_router.include_router(business.router, prefix="/business", tags=["business"])

# Employee management endpoints
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])

# Service management endpoints
api_router.include_router(services.router, prefix="/services", tags=["services"])

# Court management endpoints (sport businesses)
api_router.include_router(courts.router, prefix="/courts", tags=["courts"])

# Client endpoints
api_router.include_router(clients.router, prefix="/clients", tags=["clients"])

# Booking endpoints
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])

# Scheduling endpoints
api_router.include_router(scheduling.router, prefix="/scheduling", tags=["scheduling"])
