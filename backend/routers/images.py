import base64
import binascii
import logging
import os
import uuid as uuid_mod
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session
from db.image import Image
from db.users import User

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_IMAGE_BYTES = 100
MAX_IMAGE_BYTES = 5 * 1024 * 1024

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}


def _check_size(data: bytes) -> None:
    if len(data) < MIN_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image file appears to be corrupted or too small",
        )
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image size must be less than 5MB",
        )


async def _save(db: AsyncSession, data: bytes, content_type: str, filename: str) -> dict:
    image_id = uuid_mod.uuid4()
    db.add(Image(id=image_id, data=data, content_type=content_type))
    await db.commit()
    return {"url": f"/images/serve/{image_id}", "id": str(image_id), "name": filename}


async def store_uploaded_image(db: AsyncSession, file: UploadFile) -> dict:
    """Validate an uploaded image file and store it. Returns url/id/name."""
    data = await file.read()
    filename = file.filename or f"image_{uuid_mod.uuid4().hex[:8]}.png"

    content_type = (file.content_type or "").strip().lower()
    ext = os.path.splitext(filename)[1].lower().lstrip(".")
    if content_type and content_type != "application/octet-stream" and not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
    if (not content_type or content_type == "application/octet-stream") and ext not in EXT_TO_CONTENT_TYPE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
    _check_size(data)

    if not content_type or content_type == "application/octet-stream":
        content_type = EXT_TO_CONTENT_TYPE[ext]
    return await _save(db, data, content_type, filename)


async def store_base64_image(db: AsyncSession, base64_image: str) -> dict:
    content_type = "image/png"
    if "," in base64_image:
        prefix, base64_image = base64_image.split(",", 1)
        if prefix.startswith("data:") and ";" in prefix:
            content_type = prefix.split(";")[0].replace("data:", "").strip() or content_type
    try:
        data = base64.b64decode(base64_image, validate=True)
    except binascii.Error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 image")
    _check_size(data)
    return await _save(db, data, content_type, f"image_{uuid_mod.uuid4().hex[:8]}.png")


@router.post("/upload")
async def upload_image(
    file: Optional[UploadFile] = File(None),
    base64_image: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    """
    Upload an image and store it in the database.
    Accepts either a file upload or base64 encoded image.
    Returns the URL path to serve the image (/images/serve/{id}).
    """
    try:
        if file:
            return await store_uploaded_image(db, file)
        if base64_image:
            return await store_base64_image(db, base64_image)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either 'file' or 'base64_image' must be provided",
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Image upload failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error uploading image: {str(e)}",
        )


@router.get("/serve/{image_id}", response_class=Response)
async def serve_image(
    image_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Serve image binary by id. No auth required so img src works."""
    result = await db.execute(select(Image).where(Image.id == image_id))
    row = result.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(content=bytes(row.data), media_type=row.content_type)
