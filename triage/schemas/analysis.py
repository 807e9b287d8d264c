"""
schemas/analysis.py — Pydantic models for AI triage jobs

Confidence and effort are opaque labels from the producing model; they are
validated against their enumerations and passed through unchanged.

Called by: routers/admin_reports.py, routers/reports.py, services/ai_bug_analysis.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

JobStatus = Literal["pending", "processing", "completed", "failed"]
Confidence = Literal["low", "medium", "high"]
Effort = Literal["quick", "moderate", "significant"]


class AnalyzeRequest(BaseModel):
    include_screenshot: bool = False
    include_video: bool = False


class TimeMarker(BaseModel):
    seconds: float
    description: str


class ScreenshotAnalysis(BaseModel):
    description: str
    visible_errors: list[str] = Field(default_factory=list)
    ui_elements: list[str] = Field(default_factory=list)
    potential_issues: list[str] = Field(default_factory=list)


class VideoAnalysis(BaseModel):
    description: str
    reproduction_steps: list[str] = Field(default_factory=list)
    user_actions: list[str] = Field(default_factory=list)
    timestamps: list[TimeMarker] = Field(default_factory=list)
    error_moments: list[TimeMarker] = Field(default_factory=list)


class Solution(BaseModel):
    title: str
    description: str
    steps: list[str] = Field(default_factory=list)
    confidence: Confidence
    estimated_effort: Effort


class DocReference(BaseModel):
    section_id: str
    article_id: str
    section_title: str
    article_title: str
    relevance: str
    excerpt: str | None = None


class AnalysisJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_id: int
    status: JobStatus
    include_screenshot: bool
    include_video: bool
    summary: str | None = None
    suggested_cause: str | None = None
    confidence: Confidence | None = None
    model_used: str | None = None
    processing_time_ms: int | None = None
    screenshot_analysis: ScreenshotAnalysis | None = None
    video_analysis: VideoAnalysis | None = None
    suggested_solutions: list[Solution] = Field(default_factory=list)
    related_docs: list[DocReference] = Field(default_factory=list)
    error: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
