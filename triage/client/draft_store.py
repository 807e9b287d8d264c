"""
client/draft_store.py — Draft Store (in-progress report state)

Holds the form fields, captured media, upload results and dialog flags of
the report being composed. Every change goes through a named mutation;
subscribers are called after each one with a fresh snapshot.

Business Rules:
- Writer discipline: the capture engine writes capture/media state, the
  composer writes form state and uploaded URLs. Never both mid-operation.
- Replacing or clearing a preview revokes the old object URL exactly once
- reset() restores every field to its default and revokes all previews
- Starting a capture hides the dialog; stopping it restores the dialog

Called by: client/capture.py, client/composer.py
Depends on: client/media.py, schemas/reports.py (allowed values)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Literal, get_args

from loguru import logger

from ..errors import ValidationError
from ..schemas.reports import Category, ReportType, Severity
from .media import MediaBlob, ObjectUrlRegistry

CaptureMode = Literal["idle", "screenshot-pending", "recording"]
MediaSlot = Literal["screenshot", "video"]

MEDIA_SLOTS: tuple[str, ...] = get_args(MediaSlot)


@dataclass(frozen=True)
class Draft:
    report_type: str = "bug"
    title: str = ""
    description: str = ""
    severity: str = "medium"
    category: str = "other"

    capture_mode: str = "idle"
    is_recording: bool = False
    recording_time: int = 0
    has_microphone: bool = False
    capture_error: str | None = None

    screenshot: MediaBlob | None = None
    screenshot_preview: str | None = None
    video: MediaBlob | None = None
    video_preview: str | None = None
    screenshot_url: str | None = None
    video_url: str | None = None

    is_dialog_open: bool = False
    is_minimized: bool = False

    def blob_for(self, slot: str) -> MediaBlob | None:
        return getattr(self, slot)

    def uploaded_url(self, slot: str) -> str | None:
        return getattr(self, f"{slot}_url")


Subscriber = Callable[[Draft], None]


class DraftStore:
    def __init__(self, urls: ObjectUrlRegistry | None = None):
        self.urls = urls or ObjectUrlRegistry()
        self._state = Draft()
        self._subscribers: list[Subscriber] = []

    @property
    def state(self) -> Draft:
        return self._state

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register a listener. Returns an unsubscribe function."""
        self._subscribers.append(fn)

        def unsubscribe() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return unsubscribe

    def _set(self, **changes) -> None:
        self._publish(dataclasses.replace(self._state, **changes))

    def _publish(self, state: Draft) -> None:
        self._state = state
        for fn in list(self._subscribers):
            fn(state)

    # ── Form ─────────────────────────────────────────────────────────

    def set_report_type(self, report_type: str) -> None:
        _check("report type", report_type, get_args(ReportType))
        self._set(report_type=report_type)

    def set_title(self, title: str) -> None:
        self._set(title=title)

    def set_description(self, description: str) -> None:
        self._set(description=description)

    def set_severity(self, severity: str) -> None:
        _check("severity", severity, get_args(Severity))
        self._set(severity=severity)

    def set_category(self, category: str) -> None:
        _check("category", category, get_args(Category))
        self._set(category=category)

    # ── Dialog ───────────────────────────────────────────────────────

    def open_as(self, report_type: str) -> None:
        _check("report type", report_type, get_args(ReportType))
        self._set(report_type=report_type, is_dialog_open=True, is_minimized=False)

    def set_dialog_open(self, is_open: bool) -> None:
        self._set(is_dialog_open=is_open)

    def set_minimized(self, minimized: bool) -> None:
        self._set(is_minimized=minimized)

    # ── Capture ──────────────────────────────────────────────────────

    def set_capture_mode(self, mode: str) -> None:
        _check("capture mode", mode, get_args(CaptureMode))
        self._set(capture_mode=mode)

    def start_capture(self, mode: str) -> None:
        """Enter a capture mode and hide the dialog behind the indicator."""
        _check("capture mode", mode, ("screenshot-pending", "recording"))
        self._set(capture_mode=mode, is_dialog_open=False, is_minimized=True)

    def stop_capture(self) -> None:
        """Back to idle with the dialog restored."""
        self._set(
            capture_mode="idle",
            is_recording=False,
            is_dialog_open=True,
            is_minimized=False,
        )

    def set_recording(self, is_recording: bool, *, has_microphone: bool = False) -> None:
        self._set(
            is_recording=is_recording,
            has_microphone=has_microphone if is_recording else False,
            recording_time=0 if is_recording else self._state.recording_time,
        )

    def set_recording_time(self, seconds: int) -> None:
        self._set(recording_time=seconds)

    def increment_recording_time(self) -> None:
        self._set(recording_time=self._state.recording_time + 1)

    def set_capture_error(self, message: str | None) -> None:
        self._set(capture_error=message)

    def dismiss_capture_error(self) -> None:
        self._set(capture_error=None)

    # ── Media ────────────────────────────────────────────────────────

    def set_screenshot(self, blob: MediaBlob | None) -> None:
        self._set_media("screenshot", blob)

    def set_video(self, blob: MediaBlob | None) -> None:
        self._set_media("video", blob)

    def clear_media(self, slot: str) -> None:
        """Drop a captured blob, its preview and its uploaded URL."""
        _check("media slot", slot, MEDIA_SLOTS)
        self._set_media(slot, None)

    def set_uploaded_url(self, slot: str, url: str | None) -> None:
        _check("media slot", slot, MEDIA_SLOTS)
        self._set(**{f"{slot}_url": url})

    def _set_media(self, slot: str, blob: MediaBlob | None) -> None:
        self.urls.revoke(getattr(self._state, f"{slot}_preview"))
        preview = self.urls.create(blob) if blob else None
        # A new capture invalidates any URL uploaded for the previous one
        self._set(**{
            slot: blob if blob else None,
            f"{slot}_preview": preview,
            f"{slot}_url": None,
        })

    # ── Reset ────────────────────────────────────────────────────────

    def reset(self) -> None:
        for slot in MEDIA_SLOTS:
            self.urls.revoke(getattr(self._state, f"{slot}_preview"))
        self._publish(Draft())
        logger.debug("Draft reset")


def _check(label: str, value: str, allowed) -> None:
    if value not in allowed:
        raise ValidationError(f"Invalid {label}: {value!r}")


draft_store = DraftStore()


def get_draft_store() -> DraftStore:
    """Process-wide draft store."""
    return draft_store
