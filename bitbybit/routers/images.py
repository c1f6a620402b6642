from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.dependencies import get_current_user, get_db
from bitbybit.models.image import PostImage
from bitbybit.models.user import User
from bitbybit.schemas.image import PostImageEnvelope, PostImageResponse
from bitbybit.services.profile_service import read_image, store_image
from bitbybit.storage.base import POST_IMAGE_FORMATS, StorageBackend, get_storage_backend

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/images", response_model=PostImageEnvelope, status_code=status.HTTP_201_CREATED)
async def save_image(
    image: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageBackend = Depends(get_storage_backend),
):
    logger.info("Post image upload for user %s", user.id)
    upload = await read_image("image", image, POST_IMAGE_FORMATS)
    url = await store_image(storage, upload)

    row = PostImage(user_id=user.id, image=url)
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return PostImageEnvelope(
        message="Image uploaded successfully",
        data=PostImageResponse.model_validate(row),
    )


@router.get("/media/{key}")
async def get_media(
    key: str,
    storage: StorageBackend = Depends(get_storage_backend),
):
    try:
        path = await storage.get_path(key)
    except FileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return FileResponse(path)
