from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from core.auth import current_active_user
from core.lifecycle import days_hours_from_now
from db.database import utc_now
from db.users import User
from routers.deps import get_patch_store, internal_error, to_http_error
from schemas.applications import (
    ActivePatchRead,
    PatchApplicationCreate,
    PatchApplicationRead,
    UnapplyResult,
)
from services.patch_store import PatchStore, PatchStoreError

router = APIRouter()


@router.get("/", response_model=List[PatchApplicationRead])
async def list_applications(store: PatchStore = Depends(get_patch_store)):
    """Application history, oldest first."""
    return [a.to_schema for a in await store.list_applications()]


@router.get("/active", response_model=List[ActivePatchRead])
async def list_active_patches(store: PatchStore = Depends(get_patch_store)):
    """Worn patches with their change time, soonest due first."""
    now = utc_now()
    out = []
    for patch in await store.active_patches(now):
        days, hours = days_hours_from_now(patch.change_at, now)
        out.append({**patch.to_dict(), "days_remaining": days, "hours_remaining": hours})
    return out


@router.post("/", response_model=PatchApplicationRead, status_code=status.HTTP_201_CREATED)
async def apply_patch(
    payload: PatchApplicationCreate,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Record a new patch and take one from inventory. 409 when out of stock."""
    try:
        app = await store.apply_patch(
            payload.patch_type_id,
            payload.location,
            notes=payload.notes,
            applied_at=payload.applied_at,
        )
    except PatchStoreError as e:
        raise to_http_error(e)
    except Exception as e:
        raise await internal_error(store.db, e, "apply patch")
    return app.to_schema


@router.post("/{application_id}/unapply", response_model=UnapplyResult)
async def unapply_patch(
    application_id: UUID,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Undo an application: the record goes away and the patch goes back in stock."""
    try:
        patch_type_id = await store.unapply_patch(application_id)
    except PatchStoreError as e:
        raise to_http_error(e)
    except Exception as e:
        raise await internal_error(store.db, e, "unapply patch")
    return {"application_id": application_id, "patch_type_id": patch_type_id}


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_application(
    application_id: UUID,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    try:
        removed = await store.remove_application(application_id)
    except Exception as e:
        raise await internal_error(store.db, e, "remove application")
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application record not found")
