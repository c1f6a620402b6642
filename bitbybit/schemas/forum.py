from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from bitbybit.models.post import ReactionType
from bitbybit.schemas.auth import UserSummary


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime


class ThreadCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)
    tags: Optional[str] = Field(None, max_length=512)
    category_id: UUID
    notification: bool = False


class ThreadUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = Field(None, min_length=1)
    tags: Optional[str] = Field(None, max_length=512)
    category_id: Optional[UUID] = None
    notification: Optional[bool] = None


class ThreadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    category_id: UUID
    title: str
    body: str
    tags: Optional[str]
    notification: bool
    created_at: datetime
    updated_at: datetime


class PostWrite(BaseModel):
    content: str = Field(min_length=1)


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    thread_id: UUID
    user_id: UUID
    content: str
    is_edited: bool
    created_at: datetime
    updated_at: datetime


class ReactionWrite(BaseModel):
    reaction_type: ReactionType


class ReactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    user_id: UUID
    reaction_type: ReactionType
    created_at: datetime


class ReactionWithUser(ReactionResponse):
    user: UserSummary


class PostWithRelations(PostResponse):
    user: UserSummary
    reactions: list[ReactionResponse] = []
