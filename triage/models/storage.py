"""Object storage bookkeeping — one row per presigned upload key."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, String

from .base import Base, UTCDateTime


class MediaUpload(Base):
    __tablename__ = "media_uploads"

    id = Column(Integer, primary_key=True)
    key = Column(String(512), unique=True, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    category = Column(String(50), default="bug-reports", nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending | uploaded
    public_url = Column(String(2048))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    uploaded_at = Column(UTCDateTime)
