"""Integration tests for the periodic due-notification scan."""

import asyncio
from datetime import timedelta

from db.database import utc_now
from services.notifications import NotificationService
from services.preferences import get_preferences, update_preferences


async def grant_browser(db):
    await update_preferences(db, {"browser_permission": "granted"})


async def test_default_preferences_row(db):
    prefs = await get_preferences(db)
    assert prefs.to_schema == {
        "enable_browser_notifications": True,
        "enable_email_notifications": False,
        "notify_before_hours": 24.0,
        "email_address": "",
        "browser_permission": "default",
    }


async def test_update_preferences_ignores_none(db):
    await update_preferences(db, {"notify_before_hours": 12, "email_address": None})
    prefs = await get_preferences(db)
    assert prefs.notify_before_hours == 12
    assert prefs.email_address == ""


async def test_scan_twice_fires_once(store, db, session_maker):
    await grant_browser(db)
    app = await store.apply_patch("estradiol-2day", "Belly", applied_at=utc_now() - timedelta(hours=40))

    service = NotificationService(session_maker)
    first = await service.check_for_due_notifications()
    second = await service.check_for_due_notifications()

    assert [n.tag for n in first] == [f"patch-reminder-{app.id}"]
    assert second == []
    assert len(service.outbox) == 1


async def test_scan_without_permission_sends_nothing(store, session_maker):
    await store.apply_patch("estradiol-2day", "Belly", applied_at=utc_now() - timedelta(hours=40))
    service = NotificationService(session_maker)
    assert await service.check_for_due_notifications() == []


async def test_scan_sends_email_reminder(store, db, session_maker):
    await update_preferences(db, {"enable_email_notifications": True, "email_address": "me@example.com"})
    await store.apply_patch("estradiol-2day", "Belly", applied_at=utc_now() - timedelta(hours=40))

    service = NotificationService(session_maker)
    [email] = await service.check_for_due_notifications()
    assert email.channel == "email"
    assert email.recipient == "me@example.com"


async def test_low_inventory_refires_after_restock(store, db, session_maker):
    await grant_browser(db)
    await store.remove_from_inventory("estradiol-week", 3)  # 2 left

    service = NotificationService(session_maker)
    assert [n.tag for n in await service.check_for_due_notifications()] == ["inventory-low-estradiol-week"]
    assert await service.check_for_due_notifications() == []

    await store.add_to_inventory("estradiol-week", 10)
    assert await service.check_for_due_notifications() == []

    await store.remove_from_inventory("estradiol-week", 10)
    assert [n.tag for n in await service.check_for_due_notifications()] == ["inventory-low-estradiol-week"]


async def test_out_of_stock_alert(store, db, session_maker):
    await grant_browser(db)
    await store.remove_from_inventory("estradiol-2day", 10)

    service = NotificationService(session_maker)
    sent = await service.check_for_due_notifications()
    assert [(n.tag, n.title) for n in sent] == [("inventory-out-estradiol-2day", "Out of patches!")]


async def test_start_runs_initial_scan_and_stop(store, db, session_maker):
    await grant_browser(db)
    await store.remove_from_inventory("estradiol-2day", 10)

    service = NotificationService(session_maker, interval_seconds=3600)
    service.start()
    try:
        assert service.running
        for _ in range(50):
            if service.outbox:
                break
            await asyncio.sleep(0.05)
        assert [n.tag for n in service.outbox] == ["inventory-out-estradiol-2day"]
    finally:
        service.stop()
    assert not service.running
