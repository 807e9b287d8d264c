"""
client/media.py — Media primitives and the device seams the capture engine drives

The capture engine never touches a real browser. Everything it needs from
the platform comes through the protocols below, so tests inject fakes:
  - CaptureDevices: viewport raster, display capture, microphone
  - MediaRecorder: chunked recording of a merged stream
  - ObjectUrlRegistry: preview URLs that must be revoked exactly once

Business Rules:
- Raster scale follows device pixel ratio, capped at 2x on narrow viewports
  (< 768px wide) and 1.5x otherwise
- Devices raise PermissionError when the user declines a capture prompt

Called by: client/capture.py, client/draft_store.py, client/upload_gateway.py
Depends on: nothing outside the standard library
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

NARROW_VIEWPORT_PX = 768
NARROW_SCALE_CAP = 2.0
WIDE_SCALE_CAP = 1.5

# Elements the raster must skip: the capture widget and any open overlay
EXCLUDED_SELECTORS = (
    "[data-bug-capture]",
    "[role=dialog]",
    "[data-radix-portal]",
    "[data-overlay]",
)


def capture_scale(device_pixel_ratio: float | None, viewport_width: int) -> float:
    """Raster scale for the current device."""
    ratio = device_pixel_ratio or 1.0
    cap = NARROW_SCALE_CAP if viewport_width < NARROW_VIEWPORT_PX else WIDE_SCALE_CAP
    return min(ratio, cap)


@dataclass(frozen=True)
class MediaBlob:
    """Opaque captured bytes plus their MIME type."""

    data: bytes
    content_type: str
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    def __bool__(self) -> bool:
        return bool(self.data)


class ObjectUrlRegistry:
    """Issues local preview URLs for blobs and tracks their revocation."""

    def __init__(self):
        self._live: dict[str, MediaBlob] = {}
        self.revoked: list[str] = []

    def create(self, blob: MediaBlob) -> str:
        url = f"blob:local/{uuid.uuid4()}"
        self._live[url] = blob
        return url

    def revoke(self, url: str | None) -> bool:
        """Release a preview URL. Returns False if it was unknown or already revoked."""
        if not url or url not in self._live:
            return False
        del self._live[url]
        self.revoked.append(url)
        return True

    def resolve(self, url: str) -> MediaBlob | None:
        return self._live.get(url)

    @property
    def live_count(self) -> int:
        return len(self._live)


@dataclass
class MediaTrack:
    """One audio or video track. `end()` simulates the platform ending it."""

    kind: str
    label: str = ""
    stopped: bool = False
    _ended_listeners: list[Callable[[], None]] = field(default_factory=list, repr=False)

    def on_ended(self, callback: Callable[[], None]) -> None:
        self._ended_listeners.append(callback)

    def stop(self) -> None:
        self.stopped = True

    def end(self) -> None:
        """Ended from outside the page (e.g. sharing revoked in browser chrome)."""
        if self.stopped:
            return
        self.stopped = True
        for callback in list(self._ended_listeners):
            callback()


@dataclass
class MediaStream:
    tracks: list[MediaTrack] = field(default_factory=list)

    @property
    def video_tracks(self) -> list[MediaTrack]:
        return [t for t in self.tracks if t.kind == "video"]

    @property
    def audio_tracks(self) -> list[MediaTrack]:
        return [t for t in self.tracks if t.kind == "audio"]

    def stop_all(self) -> None:
        for track in self.tracks:
            track.stop()

    @classmethod
    def merge(cls, *streams: MediaStream | None) -> MediaStream:
        """One stream holding every track of the given streams."""
        tracks: list[MediaTrack] = []
        for stream in streams:
            if stream is not None:
                tracks.extend(stream.tracks)
        return cls(tracks=tracks)


class CaptureDevices(Protocol):
    device_pixel_ratio: float
    viewport_width: int

    async def rasterize_viewport(self, scale: float, exclude: Sequence[str]) -> MediaBlob: ...

    async def get_display_media(self) -> MediaStream: ...

    async def get_user_media(self) -> MediaStream: ...


class MediaRecorder(Protocol):
    """Chunked recorder. `stop()` must deliver any buffered chunk before returning."""

    mime_type: str
    on_data: Callable[[bytes], None] | None

    def start(self, timeslice_ms: int) -> None: ...

    async def stop(self) -> None: ...


RecorderFactory = Callable[[MediaStream], MediaRecorder]
