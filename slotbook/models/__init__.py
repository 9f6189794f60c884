# Import all models to ensure they are registered with SQLAlchemy
from . import (
    booking,
    business,
    client,
    closure,
    court,
    employee,
    service,
    working_hours,
)

__all__ = [
    "booking",
    "business",
    "client",
    "closure",
    "court",
    "employee",
    "service",
    "working_hours",
]
