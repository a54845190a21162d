"""
Camera session: one OpenCV capture handle with guaranteed release
"""
import asyncio
import logging

import cv2

from config import settings
from .exceptions import CameraError, CaptureTimeout, PermissionDenied
from .types import CameraState

logger = logging.getLogger(__name__)


def _parse_source(source):
    try:
        return int(source)
    except (TypeError, ValueError):
        return source


class CameraSession:
    """
    Owns at most one open stream.

    State machine: CLOSED --open()--> STREAMING --close()--> CLOSED.
    Use ``async with CameraSession() as camera:`` so the device is released
    on every exit path, exceptions and cancellation included.
    """

    def __init__(self, source=None, capture_factory=None, preview=None,
                 open_timeout=settings.CAMERA_OPEN_TIMEOUT,
                 warmup_frames=settings.CAMERA_WARMUP_FRAMES):
        self.source = _parse_source(settings.CAMERA_DEFAULT if source is None else source)
        self.capture_factory = capture_factory or cv2.VideoCapture
        self.preview = preview  # display surface: called with every frame read
        self.open_timeout = open_timeout
        self.warmup_frames = warmup_frames
        self._cap = None
        self._pending_read = None

    @property
    def state(self):
        return CameraState.STREAMING if self._cap is not None else CameraState.CLOSED

    @property
    def is_streaming(self):
        return self._cap is not None

    def _open_device(self):
        cap = self.capture_factory(self.source)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise PermissionDenied(f"Cannot open camera {self.source!r}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, settings.CAMERA_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, settings.CAMERA_HEIGHT)
        cap.set(cv2.CAP_PROP_FPS, settings.CAMERA_FPS)

        for _ in range(self.warmup_frames):
            cap.read()
        return cap

    async def open(self):
        """Acquire the camera; stays CLOSED and raises on failure"""
        if self._cap is not None:
            logger.debug("Camera %r already streaming", self.source)
            return self._cap

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._open_device)
        try:
            cap = await asyncio.wait_for(asyncio.shield(future), self.open_timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError) as e:
            # The open call cannot be interrupted; release whatever it returns later
            future.add_done_callback(_release_late)
            if isinstance(e, asyncio.TimeoutError):
                raise CaptureTimeout(f"Camera did not open within {self.open_timeout}s") from e
            raise

        self._cap = cap
        logger.info("Camera %r streaming", self.source)
        return cap

    async def read(self):
        """Grab the current frame (BGR numpy array)"""
        cap = self._cap
        if cap is None:
            raise CameraError("Camera is not streaming")

        loop = asyncio.get_running_loop()
        self._pending_read = loop.run_in_executor(None, cap.read)
        ret, frame = await asyncio.shield(self._pending_read)
        self._pending_read = None
        if not ret or frame is None:
            raise CameraError("Failed to read frame from camera")

        if self.preview is not None:
            self.preview(frame)
        return frame

    def close(self):
        """Release the camera. Safe to call when already closed."""
        cap, self._cap = self._cap, None
        if cap is None:
            return

        pending, self._pending_read = self._pending_read, None
        if pending is not None and not pending.done():
            # A cancelled read is still running in its worker thread
            pending.add_done_callback(lambda _: cap.release())
            logger.info("Camera %r release deferred until the pending read returns", self.source)
            return
        cap.release()
        logger.info("Camera %r released", self.source)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
        return False


def _release_late(future):
    if future.cancelled() or future.exception() is not None:
        return
    cap = future.result()
    if cap is not None:
        cap.release()
        logger.warning("Released camera that finished opening after timeout")
