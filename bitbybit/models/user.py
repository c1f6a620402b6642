from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bitbybit.models.base import Base, TimestampMixin, UUIDPrimaryKey

if TYPE_CHECKING:
    from bitbybit.models.profile import Profile


class User(UUIDPrimaryKey, TimestampMixin, Base):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(256), nullable=False)
    google_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, index=True)
    facebook_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, index=True)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # Embedded in every issued token; bumping it revokes them all.
    token_version: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    profile: Mapped[Optional[Profile]] = relationship(
        "Profile", back_populates="user", uselist=False, lazy="selectin",
    )

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None
