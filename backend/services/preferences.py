from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db.preferences import NotificationPreferences as NotificationPreferencesModel

PREFERENCES_ROW_ID = 1


async def _find_preferences(db: AsyncSession):
    res = await db.execute(
        select(NotificationPreferencesModel).where(NotificationPreferencesModel.id == PREFERENCES_ROW_ID)
    )
    return res.scalar_one_or_none()


async def get_preferences(db: AsyncSession) -> NotificationPreferencesModel:
    """Return the preferences row, creating it with defaults on first use."""
    prefs = await _find_preferences(db)
    if prefs is not None:
        return prefs

    prefs = NotificationPreferencesModel(
        id=PREFERENCES_ROW_ID,
        enable_browser_notifications=True,
        enable_email_notifications=False,
        notify_before_hours=24.0,
        email_address="",
        browser_permission="default",
    )
    db.add(prefs)
    try:
        await db.commit()
    except IntegrityError:
        # another session created the row between our read and insert
        await db.rollback()
        return await _find_preferences(db)
    await db.refresh(prefs)
    return prefs


async def update_preferences(db: AsyncSession, data: dict) -> NotificationPreferencesModel:
    prefs = await get_preferences(db)
    for key in (
        "enable_browser_notifications",
        "enable_email_notifications",
        "notify_before_hours",
        "email_address",
        "browser_permission",
    ):
        if key in data and data[key] is not None:
            setattr(prefs, key, data[key])
    await db.commit()
    await db.refresh(prefs)
    return prefs
