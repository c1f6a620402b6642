from __future__ import annotations

import logging

import httpx

from bitbybit.config import settings
from bitbybit.storage.base import ImageUpload, StorageBackend, UploadFailed

logger = logging.getLogger(__name__)


class ImgBBStorage(StorageBackend):
    """Proxies uploads to the ImgBB API; only the hosted URL is kept."""

    def __init__(self) -> None:
        self._api_key = settings.imgbb_api_key
        self._url = settings.imgbb_upload_url
        self._timeout = settings.upload_timeout_seconds

    async def upload(self, image: ImageUpload) -> str:
        if not self._api_key:
            logger.error("ImgBB API key not configured")
            raise UploadFailed("Image hosting is not configured")

        logger.info("Uploading %s (%d bytes) to ImgBB", image.filename, len(image.data))
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    params={"key": self._api_key},
                    files={"image": (image.filename, image.data)},
                )
        except httpx.HTTPError as e:
            logger.exception("Error uploading image to ImgBB")
            raise UploadFailed(str(e)) from e

        if resp.status_code != 200:
            logger.warning("Image upload to ImgBB failed: %s %s", resp.status_code, resp.text[:500])
            raise UploadFailed(f"ImgBB returned {resp.status_code}")

        try:
            url = (resp.json().get("data") or {}).get("url")
        except (ValueError, AttributeError):
            url = None
        if not url:
            logger.warning("ImgBB response without data.url: %s", resp.text[:500])
            raise UploadFailed("ImgBB response did not include a URL")

        logger.info("Image uploaded to ImgBB: %s", url)
        return url
