"""
routers/uploads.py — Object storage endpoints (presign, upload, serve)

Business Rules:
- Presign reserves a key for the caller; only that caller may PUT to it
- PUT takes the raw request body and returns a durable public URL
- Media is served by key; unknown or pending keys are 404

Called by: main.py (router mount), client/upload_gateway.py via client/api.py
Depends on: services/storage_service.py
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..errors import NotFound
from ..models import MediaUpload, User
from ..schemas.uploads import PresignRequest, PresignResponse, UploadResponse
from ..services import storage_service

router = APIRouter(tags=["uploads"])


@router.post("/api/uploads/presign", response_model=PresignResponse)
def presign_upload(
    body: PresignRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    upload = storage_service.create_upload_target(
        db, user.id, body.filename, body.content_type, body.size_bytes, body.category
    )
    return PresignResponse(upload_key=upload.key)


@router.put("/api/uploads/{key:path}", response_model=UploadResponse)
async def put_upload(
    key: str,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Raw body upload for a presigned key."""
    data = await request.body()
    content_type = request.headers.get("content-type", "").split(";")[0].strip()
    url = storage_service.store_upload(db, user.id, key, data, content_type)
    return UploadResponse(public_url=url)


@router.get("/api/media/{key:path}")
def get_media(key: str, db: Session = Depends(get_db)):
    upload = db.query(MediaUpload).filter_by(key=key, status="uploaded").first()
    if not upload:
        raise NotFound("Media not found")
    path = storage_service.media_path(key)
    if not path.is_file():
        raise NotFound("Media not found")
    return FileResponse(path, media_type=upload.content_type)
