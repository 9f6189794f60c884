"""Domain errors raised by the service layer.

Endpoints translate them into HTTP responses: ``NotFoundError`` -> 404,
``BookingValidationError`` -> 400, ``ScheduleConflictError`` and
``SlotUnavailableError`` -> 409.
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base class for booking domain errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(BookingError):
    """Entity does not exist or belongs to another business."""


class BookingValidationError(BookingError):
    """Request is malformed or violates a booking rule."""


class ScheduleConflictError(BookingError):
    """Schedule data collides with existing data (overlapping closure, duplicate court number)."""


class SlotUnavailableError(BookingError):
    """Requested slot is taken, held by another session or otherwise unavailable."""

    def __init__(
        self,
        message: str,
        conflicts: Optional[list[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.conflicts = conflicts or []
