from __future__ import annotations

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bitbybit.models.base import Base, TimestampMixin, UUIDPrimaryKey


class Category(UUIDPrimaryKey, TimestampMixin, Base):
    """Static reference data. Deleting a category removes its threads."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
