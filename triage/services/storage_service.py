"""
storage_service.py — Object storage collaborator (presign + upload)

Two-phase contract consumed by the Media Upload Gateway:
  1. create_upload_target() validates the request and reserves a key
  2. store_upload() writes the bytes for that key and returns a durable URL

Files live under settings.media_root and are served by GET /api/media/{key}.

Business Rules:
- Only allowed content types, max settings.max_upload_size_mb
- Only the owner of a key may upload to it; uploaded bytes may not exceed
  the size declared at presign time
- Re-uploading an already uploaded key returns the existing URL

Called by: routers/uploads.py
Depends on: config, models
"""

import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import Forbidden, NotFound, TriageError
from ..models import MediaUpload

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


class UploadRejected(TriageError):
    code = "upload_rejected"
    status_code = 400
    default_message = "Upload rejected"


def _safe_filename(filename: str) -> str:
    name = _SAFE_NAME.sub("-", filename.rsplit("/", 1)[-1]).strip(".-")
    return name or "upload.bin"


def media_path(key: str) -> Path:
    """Resolve a storage key to a path under media_root (no traversal)."""
    root = Path(settings.media_root).resolve()
    path = (root / key).resolve()
    if root not in path.parents:
        raise NotFound("Media not found")
    return path


def public_url_for(key: str) -> str:
    return f"{settings.app_url.rstrip('/')}/api/media/{key}"


def create_upload_target(
    db: Session,
    owner_id: int,
    filename: str,
    content_type: str,
    size_bytes: int,
    category: str = "bug-reports",
) -> MediaUpload:
    """Reserve an upload key for a file of the declared type and size."""
    if content_type not in settings.allowed_upload_types:
        raise UploadRejected(f"Unsupported content type: {content_type}")
    if size_bytes > settings.max_upload_bytes:
        raise UploadRejected(f"File too large (max {settings.max_upload_size_mb} MB)")

    key = f"{category}/{owner_id}/{uuid.uuid4().hex}/{_safe_filename(filename)}"
    upload = MediaUpload(
        key=key,
        owner_id=owner_id,
        filename=filename,
        content_type=content_type,
        size_bytes=size_bytes,
        category=category,
    )
    db.add(upload)
    db.commit()
    logger.info("Upload key reserved for user {}: {}", owner_id, key)
    return upload


def store_upload(
    db: Session,
    owner_id: int,
    key: str,
    data: bytes,
    content_type: str,
) -> str:
    """Persist the bytes for a reserved key and return the public URL."""
    upload = db.query(MediaUpload).filter_by(key=key).first()
    if not upload:
        raise NotFound("Upload key not found")
    if upload.owner_id != owner_id:
        raise Forbidden("Upload key belongs to another user")
    if upload.status == "uploaded":
        return upload.public_url
    if content_type != upload.content_type:
        raise UploadRejected("Content type does not match the presigned request")
    if len(data) > upload.size_bytes:
        raise UploadRejected("Upload larger than declared size")

    path = media_path(key)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)

    upload.status = "uploaded"
    upload.public_url = public_url_for(key)
    upload.uploaded_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("Stored {} bytes at {}", len(data), key)
    return upload.public_url
