from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bitbybit.models.base import Base, TimestampMixin, UUIDPrimaryKey


class PostImage(UUIDPrimaryKey, TimestampMixin, Base):
    __tablename__ = "post_images"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    image: Mapped[str] = mapped_column(String(1024), nullable=False)
