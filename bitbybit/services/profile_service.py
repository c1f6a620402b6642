from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.models.profile import Profile
from bitbybit.models.user import User
from bitbybit.storage.base import (
    InvalidImage,
    PROFILE_IMAGE_FORMATS,
    ImageUpload,
    StorageBackend,
    UploadFailed,
    validate_image,
)

logger = logging.getLogger(__name__)


async def read_image(field: str, upload: UploadFile, allowed: dict[str, str]) -> ImageUpload:
    data = await upload.read()
    try:
        return validate_image(data, upload.filename or "", allowed)
    except InvalidImage as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={field: [str(e)]},
        )


async def store_image(storage: StorageBackend, image: ImageUpload) -> str:
    try:
        return await storage.upload(image)
    except UploadFailed:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while uploading the image",
        )


async def get_profile(db: AsyncSession, user: User) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.user_id == user.id))
    return result.scalar_one_or_none()


async def update_profile(
    db: AsyncSession,
    storage: StorageBackend,
    user: User,
    fields: dict[str, Optional[str]],
    avatar: Optional[UploadFile],
    banners: Optional[UploadFile],
) -> Profile:
    """Apply the non-empty fields and uploaded images, creating the profile if needed.

    Both files are validated before anything is uploaded or written.
    """
    logger.info("Starting profile update for user %s", user.id)
    avatar_image = await read_image("avatar", avatar, PROFILE_IMAGE_FORMATS) if avatar else None
    banner_image = await read_image("banners", banners, PROFILE_IMAGE_FORMATS) if banners else None

    profile = await get_profile(db, user)
    if profile is None:
        profile = Profile(user_id=user.id)
        db.add(profile)

    if avatar_image is not None:
        profile.avatar = await store_image(storage, avatar_image)
    if banner_image is not None:
        profile.banners = await store_image(storage, banner_image)

    for field, value in fields.items():
        if value is not None:
            setattr(profile, field, value)

    await db.commit()
    await db.refresh(profile)
    logger.info("Profile updated for user %s", user.id)
    return profile
