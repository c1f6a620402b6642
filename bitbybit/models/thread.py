from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bitbybit.models.base import Base, TimestampMixin, UUIDPrimaryKey

if TYPE_CHECKING:
    from bitbybit.models.category import Category
    from bitbybit.models.user import User


class Thread(UUIDPrimaryKey, TimestampMixin, Base):
    """Threads are hard-deleted; their posts go with them."""

    __tablename__ = "threads"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    notification: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), nullable=False)

    user: Mapped[User] = relationship("User")
    category: Mapped[Category] = relationship("Category")
