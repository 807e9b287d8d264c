"""Post-resolution satisfaction rating — at most one per report."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime

RATINGS = ("positive", "negative")


class SatisfactionRating(Base):
    __tablename__ = "satisfaction_ratings"

    id = Column(Integer, primary_key=True)
    report_id = Column(Integer, ForeignKey("bug_reports.id"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(String(20), nullable=False)
    feedback = Column(Text)
    submitted_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    report = relationship("BugReport", back_populates="satisfaction")
