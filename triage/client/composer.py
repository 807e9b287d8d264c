"""
client/composer.py — Composer (report form + submit sequence)

Business Rules:
- Title and description are required after trimming
- Submit runs strictly in order: upload screenshot, upload video, create
  report, reset draft. A failed step stops the sequence.
- Media already uploaded for a slot is never uploaded again, so a retried
  submit after a failed create reuses the stored URL
- On failure the draft keeps its fields and captured media, and the error
  (network failures included) is kept on the composer for the retry banner
- Page URL and user agent are attached automatically

Called by: UI report dialog, tests
Depends on: client/draft_store.py, client/upload_gateway.py, client/api.py
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx
from loguru import logger

from ..errors import TriageError, ValidationError
from .draft_store import MEDIA_SLOTS, DraftStore, get_draft_store
from .upload_gateway import MediaUploadGateway


@dataclass(frozen=True)
class PageContext:
    """Where the report was filed from. Not user-editable."""

    page_url: str = ""
    user_agent: str = ""


class ReportApi(Protocol):
    async def create_report(self, fields: dict) -> dict: ...


class Composer:
    def __init__(
        self,
        gateway: MediaUploadGateway,
        api: ReportApi,
        store: DraftStore | None = None,
        context: PageContext | None = None,
    ):
        self.gateway = gateway
        self.api = api
        self.store = store or get_draft_store()
        self.context = context or PageContext()
        self.is_submitting = False
        self.error: TriageError | None = None

    # ── Dialog ───────────────────────────────────────────────────────

    def open_as_bug(self) -> None:
        self.store.open_as("bug")

    def open_as_support(self) -> None:
        self.store.open_as("support")

    def close(self) -> None:
        """Hide the dialog and keep the draft."""
        self.store.set_dialog_open(False)

    def discard(self) -> None:
        self.error = None
        self.store.reset()

    def remove_screenshot(self) -> None:
        self.store.clear_media("screenshot")

    def remove_video(self) -> None:
        self.store.clear_media("video")

    # ── Submit ───────────────────────────────────────────────────────

    @property
    def can_submit(self) -> bool:
        state = self.store.state
        return bool(state.title.strip() and state.description.strip()) and not self.is_submitting

    def validate(self) -> None:
        state = self.store.state
        missing = [name for name in ("title", "description") if not getattr(state, name).strip()]
        if missing:
            raise ValidationError(f"Required: {', '.join(missing)}")

    async def submit(self) -> dict:
        """Upload pending media, create the report, reset the draft."""
        if self.is_submitting:
            raise ValidationError("A submission is already in progress")
        self.validate()

        self.is_submitting = True
        self.error = None
        try:
            media_urls = await self._upload_media()
            state = self.store.state
            fields = {
                "report_type": state.report_type,
                "title": state.title.strip(),
                "description": state.description.strip(),
                "severity": state.severity,
                "category": state.category,
                "page_url": self.context.page_url or None,
                "user_agent": self.context.user_agent or None,
                **media_urls,
            }
            report = await self.api.create_report(fields)
        except TriageError as e:
            self.error = e
            logger.warning("Report submission failed: {}", e.message)
            raise
        except httpx.HTTPError as e:
            self.error = TriageError(f"Could not reach the server: {e}")
            logger.warning("Report submission failed: {}", e)
            raise self.error from e
        finally:
            self.is_submitting = False

        self.store.reset()
        logger.info("Report #{} submitted", report.get("id"))
        return report

    async def _upload_media(self) -> dict[str, str]:
        urls: dict[str, str] = {}
        for slot in MEDIA_SLOTS:
            state = self.store.state
            blob = state.blob_for(slot)
            if not blob:
                continue
            url = state.uploaded_url(slot)
            if not url:
                url = await self.gateway.upload(blob)
                self.store.set_uploaded_url(slot, url)
            urls[f"{slot}_url"] = url
        return urls
