import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from core.auth import current_active_user
from db.users import User
from routers.deps import get_patch_store, internal_error, to_http_error
from routers.images import store_uploaded_image
from schemas.patch_types import PatchImagePath, PatchTypeCreate, PatchTypeRead, PatchTypeUpdate
from services.patch_store import PatchStore, PatchStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[PatchTypeRead])
async def list_patch_types(store: PatchStore = Depends(get_patch_store)):
    return [pt.to_schema for pt in await store.list_patch_types()]


@router.get("/enabled", response_model=List[PatchTypeRead])
async def list_enabled_patch_types(store: PatchStore = Depends(get_patch_store)):
    return [pt.to_schema for pt in await store.enabled_patch_types()]


@router.get("/{patch_type_id}", response_model=PatchTypeRead)
async def get_patch_type(patch_type_id: str, store: PatchStore = Depends(get_patch_store)):
    try:
        return (await store.get_patch_type(patch_type_id)).to_schema
    except PatchStoreError as e:
        raise to_http_error(e)


@router.post("/", response_model=PatchTypeRead, status_code=status.HTTP_201_CREATED)
async def create_custom_patch_type(
    payload: PatchTypeCreate,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Add a custom patch type. It starts enabled with an empty inventory."""
    try:
        pt = await store.add_custom_patch_type(name=payload.name, duration_hours=payload.duration_hours)
    except Exception as e:
        raise await internal_error(store.db, e, "add patch type")
    return pt.to_schema


@router.put("/{patch_type_id}", response_model=PatchTypeRead)
async def edit_patch_type(
    patch_type_id: str,
    payload: PatchTypeUpdate,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Rename / change the duration of a custom patch type. Built-in types are read-only."""
    try:
        pt = await store.edit_patch_type(patch_type_id, name=payload.name, duration_hours=payload.duration_hours)
    except PatchStoreError as e:
        raise to_http_error(e)
    except Exception as e:
        raise await internal_error(store.db, e, "edit patch type")
    return pt.to_schema


@router.delete("/{patch_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patch_type(
    patch_type_id: str,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    try:
        await store.delete_custom_patch_type(patch_type_id)
    except PatchStoreError as e:
        raise to_http_error(e)
    except Exception as e:
        raise await internal_error(store.db, e, "delete patch type")


@router.post("/{patch_type_id}/toggle", response_model=PatchTypeRead)
async def toggle_patch_type(
    patch_type_id: str,
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    try:
        pt = await store.toggle_patch_type_enabled(patch_type_id)
    except PatchStoreError as e:
        raise to_http_error(e)
    except Exception as e:
        raise await internal_error(store.db, e, "toggle patch type")
    return pt.to_schema


@router.post("/{patch_type_id}/image", response_model=PatchTypeRead)
async def upload_patch_type_image(
    patch_type_id: str,
    file: UploadFile = File(...),
    store: PatchStore = Depends(get_patch_store),
    user: User = Depends(current_active_user),
):
    """Store a picture for the patch type and point its image_url at it."""
    try:
        await store.get_patch_type(patch_type_id)
    except PatchStoreError as e:
        raise to_http_error(e)

    try:
        uploaded = await store_uploaded_image(store.db, file)
        pt = await store.set_patch_type_image(patch_type_id, uploaded["url"])
    except HTTPException:
        raise
    except Exception as e:
        await store.db.rollback()
        logger.exception("Image upload for %s failed", patch_type_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error uploading image: {str(e)}",
        )
    return pt.to_schema


@router.get("/{patch_type_id}/image-path", response_model=PatchImagePath)
async def get_patch_image_path(patch_type_id: str, store: PatchStore = Depends(get_patch_store)):
    return {"patch_type_id": patch_type_id, "image_path": await store.patch_image_path(patch_type_id)}
