from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.auth import current_active_user
from core.config import settings
from db.users import User
from routers.deps import get_patch_store, internal_error, to_http_error
from schemas.inventory import (
    InventoryAlertRead,
    InventoryChange,
    InventoryEntryRead,
    InventoryMovementRead,
)
from services.patch_store import PatchStore, PatchStoreError

router = APIRouter()


@router.get("/", response_model=List[InventoryEntryRead])
async def list_inventory(store: PatchStore = Depends(get_patch_store)):
    return [e.to_schema for e in await store.list_inventory()]


@router.get("/alerts", response_model=List[InventoryAlertRead])
async def list_inventory_alerts(
    threshold: Optional[int] = Query(default=None, ge=0),
    store: PatchStore = Depends(get_patch_store),
):
    """Low / out-of-stock entries for enabled patch types."""
    limit = settings.low_inventory_threshold if threshold is None else threshold
    return [
        {
            "patch_type_id": a.patch_type_id,
            "patch_type_name": getattr(a.patch_type, "name", None),
            "count": a.count,
            "is_low": a.is_low,
            "is_out": a.is_out,
        }
        for a in await store.low_inventory_alerts(limit)
    ]


@router.get("/movements", response_model=List[InventoryMovementRead])
async def list_movements(
    patch_type_id: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Stock changes, newest first."""
    return [m.to_schema for m in await store.list_movements(patch_type_id, limit=limit)]


@router.post("/{patch_type_id}/add", response_model=InventoryEntryRead)
async def add_to_inventory(
    patch_type_id: str,
    payload: InventoryChange,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    try:
        entry = await store.add_to_inventory(patch_type_id, payload.count)
    except PatchStoreError as e:
        raise to_http_error(e)
    except Exception as e:
        raise await internal_error(store.db, e, "add to inventory")
    return entry.to_schema


@router.post("/{patch_type_id}/remove", response_model=InventoryEntryRead)
async def remove_from_inventory(
    patch_type_id: str,
    payload: InventoryChange,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Take patches out of stock (lost, damaged). Never goes below zero."""
    try:
        entry = await store.remove_from_inventory(patch_type_id, payload.count)
    except Exception as e:
        raise await internal_error(store.db, e, "remove from inventory")
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inventory entry not found")
    return entry.to_schema
