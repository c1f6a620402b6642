from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    data: list[T]
    current_page: int
    per_page: int
    total: int
    last_page: int


class MessageResponse(BaseModel):
    message: str
