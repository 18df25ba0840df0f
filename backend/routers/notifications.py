from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import as_utc, get_async_session
from db.users import User
from routers.deps import get_notification_service, internal_error
from schemas.notifications import (
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
    NotificationRead,
)
from services.notifications import NotificationService
from services.preferences import get_preferences, update_preferences

router = APIRouter()


@router.get("/", response_model=List[NotificationRead])
async def list_notifications(
    since: Optional[datetime] = None,
    service: NotificationService = Depends(get_notification_service),
    user: User = Depends(current_active_user),
):
    """Delivered notifications, optionally only those newer than ``since``."""
    return [n.to_dict() for n in service.pending(as_utc(since) if since else None)]


@router.post("/check", response_model=List[NotificationRead])
async def check_now(
    service: NotificationService = Depends(get_notification_service),
    user: User = Depends(current_active_user),
):
    """Run a scan immediately and return what it sent."""
    return [n.to_dict() for n in await service.check_for_due_notifications()]


@router.get("/preferences", response_model=NotificationPreferencesRead)
async def read_preferences(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    return (await get_preferences(db)).to_schema


@router.patch("/preferences", response_model=NotificationPreferencesRead)
async def patch_preferences(
    payload: NotificationPreferencesUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    try:
        prefs = await update_preferences(db, payload.model_dump(exclude_unset=True))
    except Exception as e:
        raise await internal_error(db, e, "update preferences")
    return prefs.to_schema
