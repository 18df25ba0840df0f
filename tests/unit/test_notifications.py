"""Tests for building and delivering reminder notifications."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from core.lifecycle import InventoryAlert, compute_active_patch
from services.notifications import (
    CHANNEL_BROWSER,
    CHANNEL_EMAIL,
    Notification,
    NotificationService,
    build_due_notifications,
)

T = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
TWO_DAY = SimpleNamespace(id="estradiol-2day", name="Estradiol (2 day)", duration_hours=48)


def prefs(**overrides):
    data = dict(
        enable_browser_notifications=True,
        enable_email_notifications=False,
        notify_before_hours=24,
        email_address="",
        browser_permission="granted",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def active(app_id="a1", hours_ago=40):
    app = SimpleNamespace(
        id=app_id,
        patch_type_id="estradiol-2day",
        applied_at=T - timedelta(hours=hours_ago),
        location="Left hip",
        notes=None,
    )
    return compute_active_patch(app, TWO_DAY, T)


def alert(count, patch_type_id="estradiol-2day"):
    return InventoryAlert(
        patch_type_id=patch_type_id,
        count=count,
        is_low=0 < count <= 3,
        is_out=count == 0,
        patch_type=TWO_DAY,
    )


def test_patch_reminder_payload():
    [n] = build_due_notifications([active(hours_ago=40)], [], prefs(), T)
    assert n.title == "Time to change your patch soon"
    assert n.body == "Your Estradiol (2 day) patch will need to be changed in approximately 8 hours."
    assert n.tag == "patch-reminder-a1"
    assert n.icon == "/favicon.svg"
    assert n.channel == CHANNEL_BROWSER


def test_no_reminder_outside_window_or_expired():
    assert build_due_notifications([active(hours_ago=10)], [], prefs(), T) == []
    assert build_due_notifications([active(hours_ago=50)], [], prefs(), T) == []


def test_browser_needs_permission_and_enabled():
    assert build_due_notifications([active()], [alert(0)], prefs(browser_permission="default"), T) == []
    assert build_due_notifications([active()], [alert(0)], prefs(enable_browser_notifications=False), T) == []


def test_email_reminder_when_address_set():
    out = build_due_notifications(
        [active()],
        [],
        prefs(browser_permission="denied", enable_email_notifications=True, email_address=" me@example.com "),
        T,
    )
    assert len(out) == 1
    assert out[0].channel == CHANNEL_EMAIL
    assert out[0].recipient == "me@example.com"
    assert out[0].title == "Estrogen Patch Change Reminder"


def test_email_enabled_without_address_sends_nothing():
    out = build_due_notifications([active()], [], prefs(browser_permission="denied", enable_email_notifications=True), T)
    assert out == []


def test_inventory_out_and_low_messages():
    out = build_due_notifications([], [alert(0, "a"), alert(2, "b")], prefs(), T)
    assert [n.tag for n in out] == ["inventory-out-a", "inventory-low-b"]
    assert out[0].title == "Out of patches!"
    assert out[0].body == "You're out of Estradiol (2 day) patches. Please refill your prescription soon."
    assert out[1].title == "Low patch inventory"
    assert out[1].body.startswith("You only have 2 Estradiol (2 day) patches left.")


@pytest.fixture
def service():
    return NotificationService(session_maker=None)


def _n(tag, channel=CHANNEL_BROWSER):
    return Notification(title="t", body="b", tag=tag, channel=channel, created_at=T)


def test_deliver_dedups_same_tag(service):
    assert len(service.deliver([_n("patch-reminder-a1")])) == 1
    assert service.deliver([_n("patch-reminder-a1")]) == []
    assert len(service.outbox) == 1


def test_deliver_same_tag_different_channel_is_distinct(service):
    sent = service.deliver([_n("patch-reminder-a1"), _n("patch-reminder-a1", CHANNEL_EMAIL)])
    assert len(sent) == 2


def test_deliver_releases_tag_once_condition_clears(service):
    service.deliver([_n("inventory-low-x")])
    service.deliver([])
    assert [n.tag for n in service.deliver([_n("inventory-low-x")])] == ["inventory-low-x"]


def test_pending_since(service):
    service.deliver([Notification(title="t", body="b", tag="old", created_at=T)])
    service.deliver([
        Notification(title="t", body="b", tag="old", created_at=T),
        Notification(title="t", body="b", tag="new", created_at=T + timedelta(minutes=1)),
    ])
    assert [n.tag for n in service.pending(T)] == ["new"]
    assert len(service.pending()) == 2


def test_outbox_is_bounded():
    service = NotificationService(session_maker=None, outbox_size=3)
    service.deliver([_n(f"t{i}") for i in range(5)])
    assert [n.tag for n in service.outbox] == ["t2", "t3", "t4"]


def test_stop_without_start_is_noop(service):
    service.stop()
    assert service.running is False
