from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.dependencies import get_current_user, get_db
from bitbybit.models.user import User
from bitbybit.schemas.common import MessageResponse
from bitbybit.schemas.profile import ProfileEnvelope, ProfileResponse, ProfileUpdateResponse
from bitbybit.services.profile_service import get_profile, update_profile
from bitbybit.storage.base import StorageBackend, get_storage_backend

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/update-profile", response_model=ProfileUpdateResponse)
async def update(
    first_name: Optional[str] = Form(None, alias="firstName", max_length=255),
    last_name: Optional[str] = Form(None, alias="lastName", max_length=255),
    about: Optional[str] = Form(None),
    lastseen: Optional[str] = Form(None, max_length=255),
    avatar: Optional[UploadFile] = File(None),
    banners: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageBackend = Depends(get_storage_backend),
):
    profile = await update_profile(
        db,
        storage,
        user,
        {"first_name": first_name, "last_name": last_name, "about": about, "lastseen": lastseen},
        avatar,
        banners,
    )
    return ProfileUpdateResponse(
        message="Profile updated successfully.",
        profile=ProfileResponse.model_validate(profile),
    )


@router.get("/user-profile", response_model=ProfileEnvelope)
async def show(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await get_profile(db, user)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found.")
    return ProfileEnvelope(profile=ProfileResponse.model_validate(profile))


@router.delete("/user-profile", response_model=MessageResponse)
async def destroy(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await get_profile(db, user)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found.")
    await db.delete(profile)
    await db.commit()
    logger.info("Profile deleted for user %s", user.id)
    return MessageResponse(message="Profile deleted successfully.")
