"""
schemas/uploads.py — Presign/upload contract for the object storage collaborator

Called by: routers/uploads.py
Depends on: pydantic
"""

from pydantic import BaseModel, Field


class PresignRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)
    size_bytes: int = Field(..., gt=0)
    category: str = Field("bug-reports", pattern=r"^[a-z0-9-]{1,50}$")


class PresignResponse(BaseModel):
    upload_key: str


class UploadResponse(BaseModel):
    public_url: str
