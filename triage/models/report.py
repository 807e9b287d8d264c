"""Bug report / support request model and its message thread."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime

REPORT_TYPES = ("bug", "support")
SEVERITIES = ("low", "medium", "high", "critical")
CATEGORIES = ("ui", "functionality", "performance", "data", "other")

# Status workflow: open → in_progress → resolved → closed (forward only)
STATUSES = ("open", "in_progress", "resolved", "closed")

SYSTEM_TYPES = ("submitted", "status_change", "assigned", "resolved")


def _now():
    return datetime.now(timezone.utc)


class BugReport(Base):
    __tablename__ = "bug_reports"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    report_type = Column(String(20), default="bug", nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(String(20), default="medium", nullable=False)
    category = Column(String(20), default="other", nullable=False)

    # Auto-captured reproduction context
    page_url = Column(String(2048))
    user_agent = Column(String(512))

    # Durable storage URLs, never blob:/data: references
    screenshot_url = Column(String(2048))
    video_url = Column(String(2048))

    # Reporter snapshot at submission time
    reporter_name = Column(String(255))
    reporter_email = Column(String(255))

    status = Column(String(20), default="open", nullable=False)
    admin_notes = Column(Text)
    assigned_to_id = Column(Integer, ForeignKey("users.id"))
    resolved_at = Column(UTCDateTime)
    resolved_by_id = Column(Integer, ForeignKey("users.id"))
    archived_at = Column(UTCDateTime)

    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now, onupdate=_now)

    reporter = relationship("User", foreign_keys=[user_id])
    assignee = relationship("User", foreign_keys=[assigned_to_id])
    resolved_by = relationship("User", foreign_keys=[resolved_by_id])
    messages = relationship(
        "ReportMessage",
        back_populates="report",
        order_by="ReportMessage.id",
    )
    satisfaction = relationship(
        "SatisfactionRating", back_populates="report", uselist=False
    )
    analysis_jobs = relationship(
        "AnalysisJob",
        back_populates="report",
        order_by="AnalysisJob.id",
    )

    __table_args__ = (
        Index("ix_bug_reports_user_created", "user_id", "created_at"),
        Index("ix_bug_reports_status_created", "status", "created_at"),
    )

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"


class ReportMessage(Base):
    """One entry of a report's thread. Append-only; id order is thread order."""

    __tablename__ = "report_messages"

    id = Column(Integer, primary_key=True)
    report_id = Column(Integer, ForeignKey("bug_reports.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))  # NULL for system messages
    author_name = Column(String(255), nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    system_type = Column(String(20))
    body = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, default=_now)

    report = relationship("BugReport", back_populates="messages")
    author = relationship("User")

    __table_args__ = (Index("ix_report_messages_report", "report_id", "id"),)
