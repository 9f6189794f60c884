import structlog
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.exceptions import (
    BookingError,
    NotFoundError,
    ScheduleConflictError,
    SlotUnavailableError,
)

logger = structlog.get_logger(__name__)


def to_http_exception(error: Exception) -> HTTPException:
    """Translate a domain or validation error into an HTTP error response."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)

    if isinstance(error, (SlotUnavailableError, ScheduleConflictError)):
        detail = {"message": error.message, **error.details}
        if isinstance(error, SlotUnavailableError):
            detail["conflicts"] = detail.get("conflicts") or error.conflicts
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    if isinstance(error, BookingError):
        detail = {"message": error.message, **error.details} if error.details else error.message
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    # Request models built inside endpoints raise pydantic's ValueError subclass.
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


async def internal_error(db: AsyncSession, action: str, error: Exception) -> HTTPException:
    """Roll back and log an unexpected failure; the client only sees a generic message."""
    await db.rollback()
    logger.error("Unexpected error", action=action, error=str(error), exc_info=error)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )
