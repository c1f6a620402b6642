from __future__ import annotations

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, ForeignKey, Text, UniqueConstraint, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bitbybit.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKey

if TYPE_CHECKING:
    from bitbybit.models.thread import Thread
    from bitbybit.models.user import User


class ReactionType(str, enum.Enum):
    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


class Post(UUIDPrimaryKey, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "posts"

    thread_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), nullable=False)

    thread: Mapped[Thread] = relationship("Thread")
    user: Mapped[User] = relationship("User")
    reactions: Mapped[list[Reaction]] = relationship(
        "Reaction",
        primaryjoin="and_(Reaction.post_id == Post.id, Reaction.deleted_at.is_(None))",
        order_by="Reaction.created_at",
        viewonly=True,
    )


class Reaction(UUIDPrimaryKey, TimestampMixin, SoftDeleteMixin, Base):
    """One row per (post, user). A trashed row is restored rather than duplicated."""

    __tablename__ = "post_reactions"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="unique_reaction"),)

    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    reaction_type: Mapped[ReactionType] = mapped_column(
        Enum(ReactionType, name="reaction_type"), nullable=False,
    )

    user: Mapped[User] = relationship("User")
