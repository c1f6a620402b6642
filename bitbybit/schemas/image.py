from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PostImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    image: str
    user_id: UUID
    created_at: datetime
    updated_at: datetime


class PostImageEnvelope(BaseModel):
    message: str
    data: PostImageResponse
