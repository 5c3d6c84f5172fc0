"""
Cloudinary blob store: alternative home for profile pictures and payment screenshots.

Selected with STORAGE_BACKEND=cloudinary. Cloudinary serves the uploads over its
CDN, so the secure_url from the upload response is the retrievable URL.

Setup:
  1. Create free Cloudinary account at cloudinary.com
  2. Go to Dashboard → copy Cloud Name, API Key, API Secret
  3. Add to .env file
"""
import logging
import os
from typing import Optional

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.services.backends import BackendError, BlobHandle

logger = logging.getLogger(__name__)


def configure_cloudinary() -> None:
    cloudinary.config(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        secure=True,   # always use HTTPS URLs
    )


def _public_id(key: str) -> str:
    # Cloudinary appends the format itself, so the extension is dropped
    root, _ = os.path.splitext(key)
    return root


class CloudinaryBlobStore:
    def _upload(self, key: str, data: bytes) -> BlobHandle:
        try:
            result = cloudinary.uploader.upload(
                data,
                public_id=_public_id(key),
                overwrite=False,
                resource_type="image",
            )
        except CloudinaryError as exc:
            raise BackendError(f"upload {key}", str(exc)) from exc
        logger.info("Uploaded %s to Cloudinary", result["public_id"])
        return BlobHandle(key=result["public_id"], url=result["secure_url"])

    def _delete(self, public_id: str) -> None:
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type="image", invalidate=True)
        except CloudinaryError as exc:
            raise BackendError(f"delete {public_id}", str(exc)) from exc
        if result.get("result") not in ("ok", "not found"):
            raise BackendError(f"delete {public_id}", str(result))

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> BlobHandle:
        return await run_in_threadpool(self._upload, key, data)

    async def get_url(self, handle: BlobHandle) -> str:
        if handle.url:
            return handle.url
        url, _ = cloudinary.utils.cloudinary_url(handle.key, secure=True)
        return url

    async def delete(self, handle: BlobHandle) -> None:
        await run_in_threadpool(self._delete, handle.key)
