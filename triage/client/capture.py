"""
client/capture.py — Capture Engine (screenshot and screen recording)

State machine over the draft's capture_mode:
    idle -> screenshot-pending -> idle
    idle -> recording -> idle

Business Rules:
- Only one capture at a time: a start request while another capture is
  pending, live or still tearing down is a no-op
- A draft reset during a recording tears the recording down (no video kept)
- Screenshots wait a settle delay so the closing dialog is not in the frame
- Recording needs display capture; microphone is best effort
- The recording stops on request or when the shared screen track ends
- cancel_recording() discards buffered chunks before the recorder stops,
  so no partial video ever reaches the draft
- Failures land in draft.capture_error and the engine returns to idle

Called by: UI capture widget, tests
Depends on: client/draft_store.py, client/media.py
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timezone

from loguru import logger

from ..errors import CaptureFailed, CapturePermissionDenied, TriageError
from .draft_store import DraftStore, get_draft_store
from .media import (
    EXCLUDED_SELECTORS,
    CaptureDevices,
    MediaBlob,
    MediaRecorder,
    MediaStream,
    RecorderFactory,
    capture_scale,
)

SETTLE_DELAY_S = 0.3
TICK_INTERVAL_S = 1.0
TIMESLICE_MS = 1000


def _stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


class CaptureEngine:
    def __init__(
        self,
        devices: CaptureDevices,
        recorder_factory: RecorderFactory,
        store: DraftStore | None = None,
        *,
        settle_delay: float = SETTLE_DELAY_S,
        tick_interval: float = TICK_INTERVAL_S,
        timeslice_ms: int = TIMESLICE_MS,
    ):
        self.devices = devices
        self.recorder_factory = recorder_factory
        self.store = store or get_draft_store()
        self.settle_delay = settle_delay
        self.tick_interval = tick_interval
        self.timeslice_ms = timeslice_ms

        self._recorder: MediaRecorder | None = None
        self._stream: MediaStream | None = None
        self._chunks: list[bytes] = []
        self._discard = False
        self._stopping = False
        self._pending = False
        self._ticker: asyncio.Task | None = None
        self.stop_task: asyncio.Task | None = None
        self.cancel_task: asyncio.Task | None = None
        self.last_error: TriageError | None = None
        self.store.subscribe(self._on_draft)

    @property
    def mode(self) -> str:
        return self.store.state.capture_mode

    @property
    def busy(self) -> bool:
        return (
            self.mode != "idle"
            or self._pending
            or self._recorder is not None
            or self._stopping
        )

    # ── Screenshot ───────────────────────────────────────────────────

    async def take_screenshot(self) -> MediaBlob | None:
        """Capture the viewport into the draft. Returns the blob, or None."""
        if self.busy:
            logger.debug("Screenshot ignored, capture busy ({})", self.mode)
            return None

        self._pending = True
        try:
            return await self._screenshot()
        finally:
            self._pending = False

    async def _screenshot(self) -> MediaBlob | None:
        self.last_error = None
        self.store.start_capture("screenshot-pending")
        try:
            await asyncio.sleep(self.settle_delay)
            scale = capture_scale(self.devices.device_pixel_ratio, self.devices.viewport_width)
            blob = await self.devices.rasterize_viewport(scale, EXCLUDED_SELECTORS)
            if not blob:
                raise CaptureFailed("Screenshot came back empty")
        except PermissionError:
            self._fail(CapturePermissionDenied())
            return None
        except CaptureFailed as e:
            self._fail(e)
            return None
        except Exception as e:
            logger.warning("Screenshot capture failed: {}", e)
            self._fail(CaptureFailed(f"Screenshot failed: {e}"))
            return None

        if not blob.filename:
            blob = dataclasses.replace(blob, filename=f"screenshot-{_stamp()}.png")
        self.store.set_screenshot(blob)
        self.store.stop_capture()
        logger.info("Screenshot captured ({} bytes at {}x)", blob.size, scale)
        return blob

    # ── Recording ────────────────────────────────────────────────────

    async def start_recording(self) -> bool:
        """Ask for the screen (and mic), then record in timed chunks."""
        if self.busy:
            logger.debug("Recording ignored, capture busy ({})", self.mode)
            return False

        self._pending = True
        try:
            return await self._start()
        finally:
            self._pending = False

    async def _start(self) -> bool:
        self.last_error = None
        self.store.start_capture("recording")
        try:
            display = await self.devices.get_display_media()
        except PermissionError:
            self._fail(CapturePermissionDenied())
            return False
        except Exception as e:
            logger.warning("Display capture failed: {}", e)
            self._fail(CaptureFailed(f"Could not start screen capture: {e}"))
            return False

        mic: MediaStream | None = None
        try:
            mic = await self.devices.get_user_media()
        except Exception as e:
            logger.info("Recording without microphone: {}", e)

        stream = MediaStream.merge(display, mic)
        has_microphone = bool(mic and mic.audio_tracks)
        if self.mode != "recording":
            stream.stop_all()
            logger.info("Draft reset while asking for the screen, recording abandoned")
            return False

        self._chunks = []
        self._discard = False
        try:
            recorder = self.recorder_factory(stream)
            recorder.on_data = self._on_data
            recorder.start(self.timeslice_ms)
        except Exception as e:
            stream.stop_all()
            logger.warning("Recorder failed to start: {}", e)
            self._fail(CaptureFailed(f"Could not start recording: {e}"))
            return False

        self._recorder = recorder
        self._stream = stream
        for track in display.video_tracks:
            track.on_ended(self._on_track_ended)

        self.store.set_recording(True, has_microphone=has_microphone)
        self._ticker = asyncio.create_task(self._tick())
        logger.info("Recording started (microphone: {})", has_microphone)
        return True

    async def stop_recording(self) -> MediaBlob | None:
        """Stop and keep the recording as the draft's video."""
        return await self._finish(keep=True)

    async def cancel_recording(self) -> None:
        """Stop and throw the recording away."""
        await self._finish(keep=False)

    def _on_data(self, chunk: bytes) -> None:
        if chunk and not self._discard:
            self._chunks.append(chunk)

    def _on_track_ended(self) -> None:
        if self._recorder is None or self._stopping:
            return
        logger.info("Screen share ended externally, stopping recording")
        self.stop_task = asyncio.get_running_loop().create_task(self.stop_recording())

    def _on_draft(self, state) -> None:
        if state.capture_mode != "idle" or self._recorder is None or self._stopping:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Draft reset during a recording outside the event loop")
            return
        logger.info("Draft reset during a recording, discarding it")
        self.cancel_task = loop.create_task(self.cancel_recording())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.store.increment_recording_time()

    async def _finish(self, *, keep: bool) -> MediaBlob | None:
        recorder = self._recorder
        if recorder is None or self._stopping:
            return None
        self._stopping = True

        if not keep:
            self._discard = True
            self._chunks.clear()

        stop_error: Exception | None = None
        try:
            await recorder.stop()
        except Exception as e:
            stop_error = e
            logger.warning("Recorder stop failed: {}", e)

        if self._ticker:
            self._ticker.cancel()
            self._ticker = None
        if self._stream:
            self._stream.stop_all()
        chunks, self._chunks = self._chunks, []
        self._recorder = None
        self._stream = None
        self._stopping = False

        if not keep:
            # Already idle after a draft reset; leave the fresh draft alone
            if self.mode != "idle":
                self.store.stop_capture()
            logger.info("Recording cancelled, buffered data discarded")
            return None
        if stop_error is not None:
            self._fail(CaptureFailed(f"Recording failed: {stop_error}"))
            return None
        if not chunks:
            self._fail(CaptureFailed("Recording produced no data"))
            return None

        content_type = recorder.mime_type.split(";")[0].strip() or "video/webm"
        extension = content_type.rsplit("/", 1)[-1]
        blob = MediaBlob(b"".join(chunks), content_type, f"recording-{_stamp()}.{extension}")
        self.store.set_video(blob)
        self.store.stop_capture()
        logger.info("Recording saved ({} bytes)", blob.size)
        return blob

    def _fail(self, error: TriageError) -> None:
        self.last_error = error
        self.store.set_capture_error(error.message)
        self.store.stop_capture()
