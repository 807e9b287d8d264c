"""
client/conversation.py — Conversation View, Satisfaction Collector and Analysis card

Business Rules:
- refresh() merges messages by id: server copies replace local ones, nothing
  is dropped, order is by id (insertion order on the server)
- A sent message is appended locally right away and reconciled by the
  next refresh
- The satisfaction prompt shows only for resolved/closed reports without a
  rating. Submitting hides it immediately (pending intent); the server
  state wins on every refresh once no submit is in flight.
- The analysis card always shows the most recently created job; pending and
  processing both render as in progress
- Notification deep links carry the report id as ?bugId=<id>

Called by: UI report thread (reporter and staff), notification bell
Depends on: client/api.py
"""

from __future__ import annotations

import asyncio
from typing import Protocol
from urllib.parse import parse_qs, urlsplit

from loguru import logger

from ..errors import ReportClosed, SatisfactionExists, SatisfactionNotAllowed, ValidationError

RATEABLE_STATUSES = ("resolved", "closed")
IN_PROGRESS = ("pending", "processing")
GENERIC_ANALYSIS_ERROR = "Analysis failed"


def parse_report_link(link: str | None) -> int | None:
    """Report id from a notification link, or None."""
    if not link:
        return None
    values = parse_qs(urlsplit(link).query).get("bugId")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


class ThreadApi(Protocol):
    async def get_report_with_messages(self, report_id: int) -> dict: ...

    async def add_message(self, report_id: int, text: str) -> dict: ...

    async def submit_satisfaction(self, report_id: int, rating: str, feedback: str | None = None) -> dict: ...


class SatisfactionCollector:
    def __init__(self, api: ThreadApi, report_id: int):
        self.api = api
        self.report_id = report_id
        self.status: str | None = None
        self.rating: dict | None = None
        self.has_rating = False
        self.pending = False
        self._in_flight = False

    @property
    def should_show(self) -> bool:
        return self.status in RATEABLE_STATUSES and not self.has_rating and not self.pending

    def reconcile(self, status: str | None, satisfaction: dict | None) -> None:
        """Apply server state from a refresh."""
        self.status = status
        if satisfaction:
            self.rating = satisfaction
            self.has_rating = True
            self.pending = False
        elif not self._in_flight:
            self.pending = False

    async def submit(self, rating: str, feedback: str | None = None) -> dict:
        if self.has_rating or self.pending:
            raise SatisfactionExists()
        if self.status not in RATEABLE_STATUSES:
            raise SatisfactionNotAllowed()

        self.pending = True
        self._in_flight = True
        try:
            result = await self.api.submit_satisfaction(self.report_id, rating, feedback or None)
        except SatisfactionExists:
            # Already rated elsewhere; keep the prompt hidden
            self.has_rating = True
            self.pending = False
            raise
        except Exception:
            self.pending = False
            raise
        finally:
            self._in_flight = False

        self.rating = result
        self.has_rating = True
        self.pending = False
        if self.status == "resolved":
            self.status = "closed"
        return result


class ConversationView:
    def __init__(self, api: ThreadApi, report_id: int):
        self.api = api
        self.report_id = report_id
        self.report: dict | None = None
        self.messages: list[dict] = []
        self.satisfaction = SatisfactionCollector(api, report_id)

    @classmethod
    def from_link(cls, api: ThreadApi, link: str) -> ConversationView | None:
        report_id = parse_report_link(link)
        return cls(api, report_id) if report_id is not None else None

    @property
    def is_closed(self) -> bool:
        return bool(self.report and self.report.get("status") == "closed")

    async def refresh(self) -> list[dict]:
        data = await self.api.get_report_with_messages(self.report_id)
        self.report = data["report"]
        self.merge(data.get("messages") or [])
        self.satisfaction.reconcile(self.report.get("status"), data.get("satisfaction"))
        return self.messages

    def merge(self, incoming: list[dict]) -> None:
        by_id = {m["id"]: m for m in self.messages}
        for message in incoming:
            by_id[message["id"]] = message
        self.messages = sorted(by_id.values(), key=lambda m: m["id"])

    async def send(self, text: str) -> dict:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message cannot be empty")
        if self.is_closed:
            raise ReportClosed()
        try:
            message = await self.api.add_message(self.report_id, text)
        except ReportClosed:
            if self.report is not None:
                self.report = {**self.report, "status": "closed"}
            raise
        self.merge([message])
        return message


class AnalysisApi(Protocol):
    async def get_latest_analysis(self, report_id: int, *, staff: bool = False) -> dict | None: ...

    async def start_analysis_job(
        self, report_id: int, *, include_screenshot: bool = False, include_video: bool = False
    ) -> dict: ...


def latest_job(jobs: list[dict]) -> dict | None:
    """Most recently created job (ties broken by id)."""
    if not jobs:
        return None
    return max(jobs, key=lambda j: (j.get("created_at") or "", j["id"]))


class AnalysisPanel:
    """AI analysis card. Reporters read; staff can (re)run."""

    def __init__(self, api: AnalysisApi, report_id: int, *, staff: bool = False, poll_interval: float = 2.0):
        self.api = api
        self.report_id = report_id
        self.staff = staff
        self.poll_interval = poll_interval
        self.job: dict | None = None

    @property
    def state(self) -> str:
        """none | in_progress | completed | failed"""
        if not self.job:
            return "none"
        status = self.job.get("status")
        if status in IN_PROGRESS:
            return "in_progress"
        return status

    @property
    def error_message(self) -> str | None:
        if self.state != "failed":
            return None
        return self.job.get("error") or GENERIC_ANALYSIS_ERROR

    @property
    def can_run(self) -> bool:
        return self.staff and self.state != "in_progress"

    async def refresh(self) -> dict | None:
        self.job = await self.api.get_latest_analysis(self.report_id, staff=self.staff)
        return self.job

    async def analyze(self, report: dict) -> dict:
        """Start a new job, sending only the media this report actually has."""
        job = await self.api.start_analysis_job(
            self.report_id,
            include_screenshot=bool(report.get("screenshot_url")),
            include_video=bool(report.get("video_url")),
        )
        self.job = job
        logger.info("Analysis job #{} started for report #{}", job.get("id"), self.report_id)
        return job

    async def wait(self, max_polls: int = 60) -> dict | None:
        """Poll until the latest job is terminal or polls run out."""
        for _ in range(max_polls):
            if self.state != "in_progress":
                break
            await asyncio.sleep(self.poll_interval)
            await self.refresh()
        return self.job
