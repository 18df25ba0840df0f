import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_async_session
from services.notifications import NotificationService
from services.patch_store import (
    NoStockError,
    NotCustomError,
    NotFoundError,
    PatchStore,
    PatchStoreError,
    PatchTypeInUseError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    NoStockError: status.HTTP_409_CONFLICT,
    NotCustomError: status.HTTP_403_FORBIDDEN,
    PatchTypeInUseError: status.HTTP_409_CONFLICT,
}


def get_patch_store(db: AsyncSession = Depends(get_async_session)) -> PatchStore:
    return PatchStore(db)


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notifications


def to_http_error(exc: PatchStoreError) -> HTTPException:
    code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(exc))


async def internal_error(db: AsyncSession, exc: Exception, action: str) -> HTTPException:
    """Roll back after an unexpected failure. Call from inside the ``except`` block."""
    await db.rollback()
    logger.exception("Failed to %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error trying to {action}: {str(exc)}",
    )
