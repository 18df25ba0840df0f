"""Integration tests for PatchStore against an in-memory database."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from db.database import as_utc, utc_now
from db.inventory import InventoryEntry
from services.patch_store import (
    NoStockError,
    NotCustomError,
    NotFoundError,
    PatchStore,
    PatchTypeInUseError,
)


async def count_of(store: PatchStore, patch_type_id: str) -> int:
    for entry in await store.list_inventory():
        if entry.patch_type_id == patch_type_id:
            return entry.count
    raise AssertionError(f"no inventory for {patch_type_id}")


async def test_seed_defaults_is_idempotent(store):
    assert await store.seed_defaults() == 0
    types = await store.list_patch_types()
    assert [(t.id, t.duration_hours, t.is_custom) for t in types] == [
        ("estradiol-2day", 48.0, False),
        ("estradiol-week", 168.0, False),
    ]
    assert await count_of(store, "estradiol-2day") == 10
    assert await count_of(store, "estradiol-week") == 5


async def test_apply_decrements_inventory_by_one(store):
    app = await store.apply_patch("estradiol-2day", "Left abdomen", notes="after shower")
    assert app.location == "Left abdomen"
    assert app.notes == "after shower"
    assert await count_of(store, "estradiol-2day") == 9

    [movement] = await store.list_movements("estradiol-2day")
    assert (movement.change, movement.reason, movement.application_id) == (-1, "APPLY", app.id)


async def test_apply_rejected_when_out_of_stock(store):
    pt = await store.add_custom_patch_type(name="Empty", duration_hours=72)
    with pytest.raises(NoStockError):
        await store.apply_patch(pt.id, "Left hip")
    assert await count_of(store, pt.id) == 0
    assert await store.list_applications() == []


async def test_apply_unknown_type(store):
    with pytest.raises(NotFoundError):
        await store.apply_patch("nope", "Left hip")


async def test_unapply_restores_one_and_deletes_record(store):
    app = await store.apply_patch("estradiol-week", "Right hip")
    assert await count_of(store, "estradiol-week") == 4

    assert await store.unapply_patch(app.id) == "estradiol-week"
    assert await count_of(store, "estradiol-week") == 5
    assert await store.list_applications() == []
    assert [m.reason for m in await store.list_movements("estradiol-week")].count("UNAPPLY") == 1


async def test_unapply_recreates_missing_inventory_entry(store, db):
    app = await store.apply_patch("estradiol-week", "Right hip")
    entry = (await db.execute(select(InventoryEntry).where(InventoryEntry.patch_type_id == "estradiol-week"))).scalar_one()
    await db.delete(entry)
    await db.commit()

    await store.unapply_patch(app.id)
    assert await count_of(store, "estradiol-week") == 1


async def test_unapply_unknown_application(store):
    with pytest.raises(NotFoundError):
        await store.unapply_patch(uuid.uuid4())


async def test_remove_application_keeps_inventory(store):
    app = await store.apply_patch("estradiol-2day", "Left thigh")
    assert await store.remove_application(app.id) is True
    assert await store.remove_application(app.id) is False
    assert await count_of(store, "estradiol-2day") == 9


async def test_inventory_add_and_clamped_remove(store):
    await store.add_to_inventory("estradiol-week", 3)
    assert await count_of(store, "estradiol-week") == 8

    entry = await store.remove_from_inventory("estradiol-week", 100)
    assert entry.count == 0
    reasons = [(m.reason, m.change) for m in await store.list_movements("estradiol-week")]
    assert ("RESTOCK", 3) in reasons
    assert ("REMOVE", -8) in reasons


async def test_remove_from_unknown_inventory_is_noop(store):
    assert await store.remove_from_inventory("nope", 1) is None


async def test_add_to_inventory_unknown_type(store):
    with pytest.raises(NotFoundError):
        await store.add_to_inventory("nope", 1)


async def test_custom_patch_type_lifecycle(store):
    pt = await store.add_custom_patch_type(name="Testosterone", duration_hours=24)
    assert pt.id.startswith("custom-")
    assert pt.is_custom and pt.enabled
    assert await count_of(store, pt.id) == 0

    edited = await store.edit_patch_type(pt.id, name="Testosterone gel patch", duration_hours=36)
    assert (edited.name, edited.duration_hours) == ("Testosterone gel patch", 36.0)

    await store.add_to_inventory(pt.id, 2)
    await store.remove_from_inventory(pt.id, 2)
    assert len(await store.list_movements(pt.id)) == 2

    await store.delete_custom_patch_type(pt.id)
    assert await store.find_patch_type(pt.id) is None
    assert all(e.patch_type_id != pt.id for e in await store.list_inventory())
    assert await store.list_movements(pt.id) == []


async def test_custom_ids_are_unique(store):
    a = await store.add_custom_patch_type(name="A", duration_hours=24)
    b = await store.add_custom_patch_type(name="B", duration_hours=24)
    assert a.id != b.id


async def test_builtin_types_cannot_be_edited_or_deleted(store):
    with pytest.raises(NotCustomError):
        await store.edit_patch_type("estradiol-2day", name="x", duration_hours=1)
    with pytest.raises(NotCustomError):
        await store.delete_custom_patch_type("estradiol-2day")


async def test_missing_type_cannot_be_edited_or_deleted(store):
    with pytest.raises(NotFoundError):
        await store.edit_patch_type("custom-0", name="x", duration_hours=1)
    with pytest.raises(NotFoundError):
        await store.delete_custom_patch_type("custom-0")


async def test_delete_rejected_with_application_history(store):
    pt = await store.add_custom_patch_type(name="Used", duration_hours=24)
    await store.add_to_inventory(pt.id, 1)
    await store.apply_patch(pt.id, "Arm")
    with pytest.raises(PatchTypeInUseError):
        await store.delete_custom_patch_type(pt.id)
    assert await store.find_patch_type(pt.id) is not None


async def test_toggle_and_enabled_list(store):
    pt = await store.toggle_patch_type_enabled("estradiol-week")
    assert pt.enabled is False
    assert [t.id for t in await store.enabled_patch_types()] == ["estradiol-2day"]
    pt = await store.toggle_patch_type_enabled("estradiol-week")
    assert pt.enabled is True


async def test_patch_image_path(store):
    assert await store.patch_image_path("estradiol-2day") == "/images/patch-2day.svg"
    await store.set_patch_type_image("estradiol-2day", "/images/legacy.png")
    assert await store.patch_image_path("estradiol-2day") == "/images/legacy.svg"
    assert await store.patch_image_path("unknown") == "/images/patch-default.svg"


async def test_active_patches_sorted_and_derived(store):
    now = utc_now()
    weekly = await store.apply_patch("estradiol-week", "Hip", applied_at=now - timedelta(hours=160))
    two_day = await store.apply_patch("estradiol-2day", "Belly", applied_at=now - timedelta(hours=10))
    old = await store.apply_patch("estradiol-2day", "Thigh", applied_at=now - timedelta(hours=49))

    patches = await store.active_patches(now)
    assert [p.id for p in patches] == [old.id, weekly.id, two_day.id]

    first = patches[0]
    assert first.is_expired is True
    assert first.change_at == as_utc(old.applied_at) + timedelta(hours=48)
    assert patches[1].time_remaining == timedelta(hours=8)
    assert patches[2].is_expired is False


async def test_active_patches_ties_keep_insertion_order(store):
    at = utc_now() - timedelta(hours=1)
    ids = [(await store.apply_patch("estradiol-2day", f"spot {i}", applied_at=at)).id for i in range(3)]
    assert [p.id for p in await store.active_patches()] == ids


async def test_low_inventory_alerts_only_enabled_types(store):
    await store.remove_from_inventory("estradiol-2day", 8)   # 2 left -> low
    await store.remove_from_inventory("estradiol-week", 5)   # 0 left -> out
    alerts = {a.patch_type_id: a for a in await store.low_inventory_alerts()}
    assert alerts["estradiol-2day"].is_low and not alerts["estradiol-2day"].is_out
    assert alerts["estradiol-week"].is_out and not alerts["estradiol-week"].is_low

    await store.toggle_patch_type_enabled("estradiol-week")
    assert [a.patch_type_id for a in await store.low_inventory_alerts()] == ["estradiol-2day"]


async def test_healthy_inventory_has_no_alerts(store):
    assert await store.low_inventory_alerts() == []
