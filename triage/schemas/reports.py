"""
schemas/reports.py — Pydantic models for report submission, threads and feedback

Business Rules:
- Title and description are required after trimming whitespace
- Severity/category default to medium/other; report type defaults to bug
- Media URLs must be durable http(s) URLs, never blob:/data: references
- Page URL and user agent are clipped to fit, never rejected
- Messages are 1-5000 chars after trimming

Called by: routers/reports.py, routers/admin_reports.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

ReportType = Literal["bug", "support"]
Severity = Literal["low", "medium", "high", "critical"]
Category = Literal["ui", "functionality", "performance", "data", "other"]
Status = Literal["open", "in_progress", "resolved", "closed"]
SystemType = Literal["submitted", "status_change", "assigned", "resolved"]
Rating = Literal["positive", "negative"]

CONTEXT_LIMITS = {"page_url": 2048, "user_agent": 512}


class ReportCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    report_type: ReportType = "bug"
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=10000)
    severity: Severity = "medium"
    category: Category = "other"
    page_url: str | None = None
    user_agent: str | None = None
    screenshot_url: str | None = Field(None, max_length=2048)
    video_url: str | None = Field(None, max_length=2048)

    @field_validator("screenshot_url", "video_url")
    @classmethod
    def require_durable_url(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("media must be an uploaded http(s) URL")
        return v

    @field_validator("page_url", "user_agent")
    @classmethod
    def clip_context(cls, v: str | None, info: ValidationInfo) -> str | None:
        # Client-attached context; clip to the column size
        if not v:
            return None
        return v[: CONTEXT_LIMITS[info.field_name]]


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    report_type: ReportType
    title: str
    description: str
    severity: Severity
    category: Category
    status: Status
    page_url: str | None = None
    user_agent: str | None = None
    screenshot_url: str | None = None
    video_url: str | None = None
    reporter_name: str | None = None
    reporter_email: str | None = None
    admin_notes: str | None = None
    assigned_to_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None
    archived_at: datetime | None = None


class ReportSummary(BaseModel):
    """Listing row — omits description and user agent."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    report_type: ReportType
    title: str
    severity: Severity
    category: Category
    status: Status
    reporter_name: str | None = None
    reporter_email: str | None = None
    assigned_to_id: int | None = None
    has_screenshot: bool = False
    has_video: bool = False
    created_at: datetime | None = None
    resolved_at: datetime | None = None


class MessageCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(..., min_length=1, max_length=5000)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_id: int
    user_id: int | None = None
    author_name: str
    is_admin: bool
    is_system: bool
    system_type: SystemType | None = None
    body: str
    created_at: datetime | None = None


class SatisfactionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: Rating
    feedback: str | None = Field(None, max_length=2000)


class SatisfactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_id: int
    user_id: int
    rating: Rating
    feedback: str | None = None
    submitted_at: datetime | None = None


class ReportThread(BaseModel):
    report: ReportOut
    messages: list[MessageOut]
    satisfaction: SatisfactionOut | None = None


class StatusUpdate(BaseModel):
    status: Status | None = None
    admin_notes: str | None = None


class AssigneeUpdate(BaseModel):
    assignee_id: int
