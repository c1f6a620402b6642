from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from bitbybit.config import settings

# Pillow format name -> file extension
PROFILE_IMAGE_FORMATS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif"}
POST_IMAGE_FORMATS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}


class InvalidImage(ValueError):
    pass


class UploadFailed(Exception):
    """The image host did not accept the upload."""


@dataclass(frozen=True)
class ImageUpload:
    data: bytes
    filename: str
    extension: str


def validate_image(data: bytes, filename: str, allowed: dict[str, str]) -> ImageUpload:
    """Check size and real image format; the client-supplied content type is not trusted."""
    if not data:
        raise InvalidImage("The file is empty.")
    if len(data) > settings.upload_max_bytes:
        raise InvalidImage(f"The file may not be greater than {settings.upload_max_bytes // 1024} kilobytes.")
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise InvalidImage("The file must be an image.")
    if fmt not in allowed:
        raise InvalidImage(f"The file must be a file of type: {', '.join(sorted(set(allowed.values())))}.")
    return ImageUpload(data=data, filename=filename or f"upload.{allowed[fmt]}", extension=allowed[fmt])


class StorageBackend(ABC):
    @abstractmethod
    async def upload(self, image: ImageUpload) -> str:
        """Store the image and return its public URL."""

    async def get_path(self, key: str) -> Path:
        raise FileNotFoundError(key)

    @staticmethod
    def new_key(image: ImageUpload) -> str:
        return f"{uuid4().hex}.{image.extension}"


def get_storage_backend() -> StorageBackend:
    if settings.storage_backend == "imgbb":
        from bitbybit.storage.imgbb import ImgBBStorage

        return ImgBBStorage()
    if settings.storage_backend == "local":
        from bitbybit.storage.local import LocalStorage

        return LocalStorage()
    raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")
