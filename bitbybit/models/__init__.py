from bitbybit.models.base import Base
from bitbybit.models.user import User
from bitbybit.models.profile import Profile
from bitbybit.models.category import Category
from bitbybit.models.thread import Thread
from bitbybit.models.post import Post, Reaction, ReactionType
from bitbybit.models.image import PostImage
from bitbybit.models.token import PasswordResetToken, RevokedToken

__all__ = [
    "Base",
    "User",
    "Profile",
    "Category",
    "Thread",
    "Post",
    "Reaction",
    "ReactionType",
    "PostImage",
    "PasswordResetToken",
    "RevokedToken",
]
