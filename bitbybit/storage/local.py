from __future__ import annotations

from pathlib import Path

import aiofiles
import aiofiles.os

from bitbybit.config import settings
from bitbybit.storage.base import ImageUpload, StorageBackend


class LocalStorage(StorageBackend):
    def __init__(self) -> None:
        self._root = settings.media_path

    async def upload(self, image: ImageUpload) -> str:
        await aiofiles.os.makedirs(self._root, exist_ok=True)
        key = self.new_key(image)
        async with aiofiles.open(self._root / key, "wb") as f:
            await f.write(image.data)
        return f"{settings.media_url_prefix.rstrip('/')}/{key}"

    async def get_path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise FileNotFoundError(key)
        return path
