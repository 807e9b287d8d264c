"""
client/upload_gateway.py — Media Upload Gateway

Turns a captured blob into a durable URL through the storage collaborator:
presign a key for (filename, content type, size), then upload the bytes.

Business Rules:
- Any failure in either phase surfaces as UploadFailed
- Only http(s) URLs count as durable; anything else is a failed upload

Called by: client/composer.py
Depends on: client/api.py (StorageApi), client/media.py
"""

from __future__ import annotations

from typing import Protocol

import httpx
from loguru import logger

from ..errors import TriageError, UploadFailed
from .media import MediaBlob

DEFAULT_CATEGORY = "bug-reports"


class StorageApi(Protocol):
    async def presign_upload(
        self, filename: str, content_type: str, size_bytes: int, category: str = DEFAULT_CATEGORY
    ) -> str: ...

    async def upload_blob(self, upload_key: str, blob: MediaBlob) -> str: ...


class MediaUploadGateway:
    def __init__(self, api: StorageApi, category: str = DEFAULT_CATEGORY):
        self.api = api
        self.category = category

    async def upload(self, blob: MediaBlob, filename: str | None = None) -> str:
        name = filename or blob.filename or "upload.bin"
        try:
            key = await self.api.presign_upload(name, blob.content_type, blob.size, self.category)
            url = await self.api.upload_blob(key, blob)
        except UploadFailed:
            raise
        except TriageError as e:
            raise UploadFailed(e.message) from e
        except httpx.HTTPError as e:
            raise UploadFailed(f"Upload of {name} failed: {e}") from e

        if not url or not url.startswith(("http://", "https://")):
            raise UploadFailed(f"Storage returned a non-durable URL for {name}")
        logger.info("Uploaded {} ({} bytes)", name, blob.size)
        return url
