from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: UUID = Field(serialization_alias="userId")
    first_name: Optional[str] = Field(None, serialization_alias="firstName")
    last_name: Optional[str] = Field(None, serialization_alias="lastName")
    about: Optional[str] = None
    lastseen: Optional[str] = None
    avatar: Optional[str] = None
    banners: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProfileEnvelope(BaseModel):
    profile: ProfileResponse


class ProfileUpdateResponse(BaseModel):
    message: str
    profile: ProfileResponse
