"""Camera frame sources for the attendance kiosk."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol, Union, runtime_checkable

import numpy as np
from django.conf import settings
from imutils.video import VideoStream

from . import monitoring

logger = logging.getLogger(__name__)


@runtime_checkable
class FrameSource(Protocol):
    def read(self) -> Optional[np.ndarray]:
        """Return the latest frame, or ``None`` when the camera has nothing."""


class WebcamFrameSource:
    """A device camera read through ``imutils.video.VideoStream``.

    The stream keeps only the most recent frame, so a slow consumer never sees
    a backlog of stale frames.
    """

    def __init__(
        self,
        src: Union[int, str, None] = None,
        warmup_time: Optional[float] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if src is None:
            src = getattr(settings, "RECOGNITION_CAMERA_SOURCE", 0)
        if warmup_time is None:
            warmup_time = float(getattr(settings, "RECOGNITION_CAMERA_WARMUP_SECONDS", 2.0))
        self._src = src
        self._warmup_time = max(0.0, warmup_time)
        self._sleep = sleep
        self._stream: Optional[VideoStream] = None
        self._last_capture: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self) -> "WebcamFrameSource":
        if self._stream is not None:
            return self

        start_time = time.perf_counter()
        try:
            self._stream = VideoStream(src=self._src).start()
            if self._warmup_time:
                self._sleep(self._warmup_time)
        except Exception as exc:
            self._stream = None
            monitoring.record_camera_start(False, time.perf_counter() - start_time, error=str(exc))
            raise
        monitoring.record_camera_start(True, time.perf_counter() - start_time)
        return self

    def read(self) -> Optional[np.ndarray]:
        if self._stream is None:
            return None

        frame = self._stream.read()
        if frame is None:
            monitoring.record_frame_drop()
            return None

        now = time.monotonic()
        delay = 0.0 if self._last_capture is None else now - self._last_capture
        self._last_capture = now
        monitoring.record_frame_delay(delay, capture_time=time.time())
        return frame.copy()

    def stop(self) -> None:
        if self._stream is None:
            return

        stream, self._stream = self._stream, None
        self._last_capture = None
        try:
            stream.stop()
        except Exception as exc:
            monitoring.record_camera_stop(False, error=str(exc))
            raise
        monitoring.record_camera_stop(True)

    def __enter__(self) -> "WebcamFrameSource":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = ["FrameSource", "WebcamFrameSource"]
