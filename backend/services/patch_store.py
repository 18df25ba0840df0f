"""
PatchStore: patch types, applications and inventory over one AsyncSession.

Every mutating method commits before returning, so callers never have to
remember to save. Lookups that miss raise NotFoundError; rule violations
raise the other PatchStoreError subclasses and leave the data untouched.
"""

import logging
import time
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.lifecycle import (
    LOW_INVENTORY_THRESHOLD,
    ActivePatch,
    InventoryAlert,
    compute_active_patch,
    low_inventory_alert,
    sort_active_patches,
)
from db.application import PatchApplication as PatchApplicationModel
from db.database import as_utc, utc_now
from db.inventory import InventoryEntry as InventoryEntryModel
from db.inventory import InventoryMovement as InventoryMovementModel
from db.patch_type import PatchType as PatchTypeModel

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_PATH = "/images/patch-default.svg"
CUSTOM_IMAGE_PATH = "/images/patch-custom.svg"

DEFAULT_PATCH_TYPES = [
    {"id": "estradiol-2day", "name": "Estradiol (2 day)", "duration_hours": 48, "image_url": "/images/patch-2day.svg", "count": 10},
    {"id": "estradiol-week", "name": "Estradiol (Weekly)", "duration_hours": 168, "image_url": "/images/patch-week.svg", "count": 5},
]


class PatchStoreError(RuntimeError):
    pass


class NotFoundError(PatchStoreError):
    pass


class NoStockError(PatchStoreError):
    pass


class NotCustomError(PatchStoreError):
    pass


class PatchTypeInUseError(PatchStoreError):
    pass


class PatchStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---- patch types ----------------------------------------------------

    async def list_patch_types(self) -> List[PatchTypeModel]:
        res = await self.db.execute(select(PatchTypeModel).order_by(PatchTypeModel.created_at, PatchTypeModel.id))
        return list(res.scalars().all())

    async def enabled_patch_types(self) -> List[PatchTypeModel]:
        return [pt for pt in await self.list_patch_types() if pt.enabled]

    async def find_patch_type(self, patch_type_id: str) -> Optional[PatchTypeModel]:
        res = await self.db.execute(select(PatchTypeModel).where(PatchTypeModel.id == patch_type_id))
        return res.scalar_one_or_none()

    async def get_patch_type(self, patch_type_id: str) -> PatchTypeModel:
        pt = await self.find_patch_type(patch_type_id)
        if not pt:
            raise NotFoundError("Patch type not found")
        return pt

    async def _get_custom_patch_type(self, patch_type_id: str) -> PatchTypeModel:
        pt = await self.get_patch_type(patch_type_id)
        if not pt.is_custom:
            raise NotCustomError("Only custom patch types can be changed")
        return pt

    async def toggle_patch_type_enabled(self, patch_type_id: str) -> PatchTypeModel:
        pt = await self.get_patch_type(patch_type_id)
        pt.enabled = not pt.enabled
        await self.db.commit()
        await self.db.refresh(pt)
        return pt

    async def edit_patch_type(self, patch_type_id: str, *, name: str, duration_hours: float) -> PatchTypeModel:
        pt = await self._get_custom_patch_type(patch_type_id)
        pt.name = name
        pt.duration_hours = float(duration_hours)
        await self.db.commit()
        await self.db.refresh(pt)
        return pt

    async def _new_custom_id(self) -> str:
        stamp = int(time.time() * 1000)
        while await self.find_patch_type(f"custom-{stamp}"):
            stamp += 1
        return f"custom-{stamp}"

    async def add_custom_patch_type(self, *, name: str, duration_hours: float) -> PatchTypeModel:
        pt = PatchTypeModel(
            id=await self._new_custom_id(),
            name=name,
            duration_hours=float(duration_hours),
            image_url=CUSTOM_IMAGE_PATH,
            enabled=True,
            is_custom=True,
        )
        self.db.add(pt)
        self.db.add(InventoryEntryModel(patch_type_id=pt.id, count=0))
        await self.db.commit()
        await self.db.refresh(pt)
        logger.info("Added custom patch type %s (%s, %sh)", pt.id, pt.name, pt.duration_hours)
        return pt

    async def delete_custom_patch_type(self, patch_type_id: str) -> None:
        pt = await self._get_custom_patch_type(patch_type_id)

        used = await self.db.execute(
            select(func.count()).select_from(PatchApplicationModel).where(PatchApplicationModel.patch_type_id == patch_type_id)
        )
        if int(used.scalar_one() or 0) > 0:
            raise PatchTypeInUseError("Cannot delete patch type with active applications")

        # its movement rows go with it; the inventory entry goes through the relationship cascade
        movements = await self.db.execute(
            select(InventoryMovementModel).where(InventoryMovementModel.patch_type_id == patch_type_id)
        )
        for m in movements.scalars().all():
            await self.db.delete(m)
        await self.db.delete(pt)
        await self.db.commit()
        logger.info("Deleted custom patch type %s", patch_type_id)

    async def set_patch_type_image(self, patch_type_id: str, image_url: str) -> PatchTypeModel:
        pt = await self.get_patch_type(patch_type_id)
        pt.image_url = image_url
        await self.db.commit()
        await self.db.refresh(pt)
        return pt

    async def patch_image_path(self, patch_type_id: str) -> str:
        pt = await self.find_patch_type(patch_type_id)
        path = (pt.image_url if pt else None) or DEFAULT_IMAGE_PATH
        return path.replace(".png", ".svg")

    # ---- inventory ------------------------------------------------------

    async def _find_inventory(self, patch_type_id: str) -> Optional[InventoryEntryModel]:
        res = await self.db.execute(
            select(InventoryEntryModel)
            .where(InventoryEntryModel.patch_type_id == patch_type_id)
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def _change_stock(self, patch_type_id: str, delta: int) -> Optional[int]:
        """
        Shift the stock count by ``delta`` in a single UPDATE and return the new count.

        A decrement only matches while the count can cover it, so two requests
        racing for the last patch cannot both win. Returns None when no row
        matched (no entry, or not enough stock).
        """
        stock_tbl = InventoryEntryModel.__table__
        stmt = update(stock_tbl).where(stock_tbl.c.patch_type_id == patch_type_id)
        if delta < 0:
            stmt = stmt.where(stock_tbl.c.count >= -delta)
        res = await self.db.execute(
            stmt.values(count=stock_tbl.c.count + delta).returning(stock_tbl.c.count)
        )
        return res.scalar_one_or_none()

    def _record_movement(self, patch_type_id: str, change: int, reason: str, application_id: Optional[UUID] = None) -> None:
        self.db.add(
            InventoryMovementModel(
                patch_type_id=patch_type_id,
                change=change,
                reason=reason,
                application_id=application_id,
            )
        )

    async def list_inventory(self) -> List[InventoryEntryModel]:
        res = await self.db.execute(
            select(InventoryEntryModel)
            .order_by(InventoryEntryModel.patch_type_id)
            .execution_options(populate_existing=True)
        )
        return list(res.scalars().all())

    async def list_movements(self, patch_type_id: Optional[str] = None, limit: int = 100) -> List[InventoryMovementModel]:
        stmt = select(InventoryMovementModel)
        if patch_type_id:
            stmt = stmt.where(InventoryMovementModel.patch_type_id == patch_type_id)
        res = await self.db.execute(stmt.order_by(InventoryMovementModel.created_at.desc()).limit(limit))
        return list(res.scalars().all())

    async def add_to_inventory(self, patch_type_id: str, count: int) -> InventoryEntryModel:
        await self.get_patch_type(patch_type_id)
        if await self._change_stock(patch_type_id, count) is None:
            self.db.add(InventoryEntryModel(patch_type_id=patch_type_id, count=count))
        self._record_movement(patch_type_id, count, "RESTOCK")
        await self.db.commit()
        return await self._find_inventory(patch_type_id)

    async def remove_from_inventory(self, patch_type_id: str, count: int) -> Optional[InventoryEntryModel]:
        stock_tbl = InventoryEntryModel.__table__
        while True:
            res = await self.db.execute(select(stock_tbl.c.count).where(stock_tbl.c.patch_type_id == patch_type_id))
            before = res.scalar_one_or_none()
            if before is None:
                return None
            after = max(0, int(before) - count)
            if after == before:
                break
            # compare-and-set: retry if another request changed the count since the read
            res = await self.db.execute(
                update(stock_tbl)
                .where(stock_tbl.c.patch_type_id == patch_type_id, stock_tbl.c.count == before)
                .values(count=after)
                .returning(stock_tbl.c.count)
            )
            if res.scalar_one_or_none() is not None:
                self._record_movement(patch_type_id, after - before, "REMOVE")
                break
        await self.db.commit()
        return await self._find_inventory(patch_type_id)

    async def low_inventory_alerts(self, threshold: int = LOW_INVENTORY_THRESHOLD) -> List[InventoryAlert]:
        enabled = {pt.id: pt for pt in await self.enabled_patch_types()}
        out = []
        for entry in await self.list_inventory():
            pt = enabled.get(entry.patch_type_id)
            if pt is None:
                continue
            alert = low_inventory_alert(entry, threshold, patch_type=pt)
            if alert.needs_attention:
                out.append(alert)
        return out

    # ---- applications ---------------------------------------------------

    async def list_applications(self) -> List[PatchApplicationModel]:
        res = await self.db.execute(
            select(PatchApplicationModel).order_by(PatchApplicationModel.seq, PatchApplicationModel.applied_at)
        )
        return list(res.scalars().all())

    async def get_application(self, application_id: UUID) -> PatchApplicationModel:
        res = await self.db.execute(select(PatchApplicationModel).where(PatchApplicationModel.id == application_id))
        app = res.scalar_one_or_none()
        if not app:
            raise NotFoundError("Application record not found")
        return app

    async def apply_patch(
        self,
        patch_type_id: str,
        location: str,
        notes: Optional[str] = None,
        applied_at: Optional[datetime] = None,
    ) -> PatchApplicationModel:
        await self.get_patch_type(patch_type_id)
        left = await self._change_stock(patch_type_id, -1)
        if left is None:
            raise NoStockError("No patches available in inventory")

        app = PatchApplicationModel(
            patch_type_id=patch_type_id,
            applied_at=as_utc(applied_at) if applied_at else utc_now(),
            location=location,
            notes=notes,
        )
        self.db.add(app)
        await self.db.flush()

        self._record_movement(patch_type_id, -1, "APPLY", app.id)
        await self.db.commit()
        await self.db.refresh(app)
        logger.info("Applied %s at %s (%s left)", patch_type_id, location, left)
        return app

    async def _delete_application(self, application_id: UUID) -> bool:
        res = await self.db.execute(delete(PatchApplicationModel).where(PatchApplicationModel.id == application_id))
        return res.rowcount > 0

    async def unapply_patch(self, application_id: UUID) -> str:
        """Delete the application and put its patch back in stock. Returns the patch type id."""
        app = await self.get_application(application_id)
        patch_type_id = app.patch_type_id
        # a concurrent unapply may have removed it since the lookup
        if not await self._delete_application(application_id):
            raise NotFoundError("Application record not found")

        if await self._change_stock(patch_type_id, 1) is None:
            self.db.add(InventoryEntryModel(patch_type_id=patch_type_id, count=1))
        self._record_movement(patch_type_id, 1, "UNAPPLY", application_id)
        await self.db.commit()
        logger.info("Unapplied %s, returned one %s to inventory", application_id, patch_type_id)
        return patch_type_id

    async def remove_application(self, application_id: UUID) -> bool:
        removed = await self._delete_application(application_id)
        await self.db.commit()
        return removed

    async def active_patches(self, now: Optional[datetime] = None) -> List[ActivePatch]:
        now = now or utc_now()
        types = {pt.id: pt for pt in await self.list_patch_types()}
        return sort_active_patches(
            compute_active_patch(app, types.get(app.patch_type_id), now, applied_at=as_utc(app.applied_at))
            for app in await self.list_applications()
        )

    # ---- bootstrap ------------------------------------------------------

    async def seed_defaults(self) -> int:
        """Insert the built-in patch types and their starting stock if missing."""
        added = 0
        for spec in DEFAULT_PATCH_TYPES:
            if await self.find_patch_type(spec["id"]):
                continue
            self.db.add(
                PatchTypeModel(
                    id=spec["id"],
                    name=spec["name"],
                    duration_hours=float(spec["duration_hours"]),
                    image_url=spec["image_url"],
                    enabled=True,
                    is_custom=False,
                )
            )
            self.db.add(InventoryEntryModel(patch_type_id=spec["id"], count=spec["count"]))
            added += 1
        if added:
            await self.db.commit()
            logger.info("Seeded %d built-in patch types", added)
        return added
