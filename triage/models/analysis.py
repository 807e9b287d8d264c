"""AI triage job model — one row per analysis run, newest wins."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime

# pending → processing → completed | failed
JOB_STATUSES = ("pending", "processing", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")
CONFIDENCE_LEVELS = ("low", "medium", "high")
EFFORT_LEVELS = ("quick", "moderate", "significant")


class AnalysisJob(Base):
    __tablename__ = "analysis_jobs"

    id = Column(Integer, primary_key=True)
    report_id = Column(Integer, ForeignKey("bug_reports.id"), nullable=False)
    requested_by_id = Column(Integer, ForeignKey("users.id"))
    status = Column(String(20), default="pending", nullable=False)
    include_screenshot = Column(Boolean, default=False, nullable=False)
    include_video = Column(Boolean, default=False, nullable=False)

    # Verdict (populated on completed)
    summary = Column(Text)
    suggested_cause = Column(Text)
    confidence = Column(String(20))
    model_used = Column(String(100))
    processing_time_ms = Column(Integer)
    screenshot_analysis = Column(JSON)
    video_analysis = Column(JSON)
    suggested_solutions = Column(JSON)
    related_docs = Column(JSON)

    error = Column(Text)

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    started_at = Column(UTCDateTime)
    completed_at = Column(UTCDateTime)

    report = relationship("BugReport", back_populates="analysis_jobs")

    __table_args__ = (Index("ix_analysis_jobs_report_created", "report_id", "created_at"),)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
