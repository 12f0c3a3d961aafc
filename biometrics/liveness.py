"""Passive liveness analysis combining blink detection and head movement.

A short window of landmark samples is collected from the live feed. The face is
considered live only when the window contains an eye-closure transition (a
blink) *and* the head yaw moved by more than a threshold. Each signal alone is
easy to fake, so failures name the missing signal and the kiosk can prompt for
the right correction.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Sequence

import numpy as np

from .config import LivenessThresholds
from .detection import LandmarkObservation, LandmarkTracker
from .results import RejectionReason

if TYPE_CHECKING:
    from .camera import FrameSource

logger = logging.getLogger(__name__)

LEFT_EYE_INDICES = (33, 160, 158, 133, 153, 144)
RIGHT_EYE_INDICES = (362, 385, 387, 263, 373, 380)


def eye_aspect_ratio(points: np.ndarray) -> Optional[float]:
    """EAR of six eye contour points ``p1..p6``.

    ``(|p2 - p6| + |p3 - p5|) / (2 * |p1 - p4|)``; ``None`` when the eye
    corners coincide.
    """

    points = np.asarray(points, dtype=float)
    if points.shape[0] != 6:
        raise ValueError("eye_aspect_ratio expects exactly six points")
    vertical_a = float(np.linalg.norm(points[1, :2] - points[5, :2]))
    vertical_b = float(np.linalg.norm(points[2, :2] - points[4, :2]))
    horizontal = float(np.linalg.norm(points[0, :2] - points[3, :2]))
    if horizontal == 0.0:
        return None
    return (vertical_a + vertical_b) / (2.0 * horizontal)


def average_eye_aspect_ratio(landmarks: np.ndarray) -> Optional[float]:
    landmarks = np.asarray(landmarks, dtype=float)
    if landmarks.ndim != 2 or landmarks.shape[0] <= max(RIGHT_EYE_INDICES):
        return None
    left = eye_aspect_ratio(landmarks[list(LEFT_EYE_INDICES)])
    right = eye_aspect_ratio(landmarks[list(RIGHT_EYE_INDICES)])
    if left is None or right is None:
        return None
    return (left + right) / 2.0


def yaw_from_transformation(matrix: Optional[np.ndarray]) -> Optional[float]:
    """Head yaw in radians from a 4x4 facial transformation matrix."""

    if matrix is None:
        return None
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape != (4, 4):
        return None
    return math.atan2(matrix[0, 2], matrix[0, 0])


@dataclass(frozen=True)
class LivenessSample:
    """One iteration of the window; ``ear``/``yaw`` are ``None`` without a face."""

    ear: Optional[float]
    yaw: Optional[float]
    timestamp: float

    @classmethod
    def from_observation(
        cls, observation: Optional[LandmarkObservation], timestamp: float
    ) -> "LivenessSample":
        if observation is None:
            return cls(ear=None, yaw=None, timestamp=timestamp)
        return cls(
            ear=average_eye_aspect_ratio(observation.landmarks),
            yaw=yaw_from_transformation(observation.transformation),
            timestamp=timestamp,
        )


@dataclass(frozen=True)
class LivenessCheckResult:
    passed: bool
    reason: Optional[RejectionReason]
    blink_detected: bool
    head_movement: float
    frames_analyzed: int


@dataclass
class LivenessWindow:
    """Bounded buffer holding the samples of one check."""

    maxlen: int = 15
    _samples: deque[LivenessSample] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.maxlen = max(2, int(self.maxlen))
        self._samples = deque(maxlen=self.maxlen)

    def append(self, sample: LivenessSample) -> None:
        self._samples.append(sample)

    def snapshot(self) -> list[LivenessSample]:
        return list(self._samples)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._samples)


def evaluate_liveness(
    samples: Iterable[LivenessSample], thresholds: LivenessThresholds
) -> LivenessCheckResult:
    """Decide liveness for a window of samples.

    The previous EAR starts at zero and only advances on samples where a face
    was seen, so a blink needs an open-eye reading before the closed one.
    """

    last_ear = 0.0
    last_yaw: Optional[float] = None
    blink_detected = False
    head_movement = 0.0
    frames_analyzed = 0

    for sample in samples:
        if sample.ear is not None:
            frames_analyzed += 1
            if last_ear > thresholds.ear_open and sample.ear < thresholds.ear_closed:
                blink_detected = True
            last_ear = sample.ear
        if sample.yaw is not None:
            if last_yaw is not None:
                head_movement += abs(sample.yaw - last_yaw)
            last_yaw = sample.yaw

    reason: Optional[RejectionReason] = None
    if not blink_detected:
        reason = RejectionReason.NO_BLINK_DETECTED
    elif head_movement <= thresholds.yaw_movement:
        reason = RejectionReason.NO_HEAD_MOVEMENT

    return LivenessCheckResult(
        passed=reason is None,
        reason=reason,
        blink_detected=blink_detected,
        head_movement=head_movement,
        frames_analyzed=frames_analyzed,
    )


class LivenessAnalyzer:
    """Sample the landmark tracker over a fixed, paced window and evaluate it."""

    def __init__(
        self,
        tracker: LandmarkTracker,
        thresholds: LivenessThresholds,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.tracker = tracker
        self.thresholds = thresholds
        self._sleep = sleep
        self._clock = clock

    def collect_samples(self, frame_source: "FrameSource") -> Sequence[LivenessSample]:
        window = LivenessWindow(maxlen=self.thresholds.iterations)
        for _ in range(self.thresholds.iterations):
            now = self._clock()
            frame = frame_source.read()
            observation = None
            if frame is not None:
                observation = self.tracker.observe(frame, int(now * 1000))
            window.append(LivenessSample.from_observation(observation, now))
            self._sleep(self.thresholds.interval_seconds)
        return window.snapshot()

    def check(self, frame_source: "FrameSource") -> LivenessCheckResult:
        result = evaluate_liveness(self.collect_samples(frame_source), self.thresholds)
        logger.debug(
            "Liveness check finished",
            extra={
                "event": "liveness",
                "passed": result.passed,
                "reason": result.reason.value if result.reason else None,
                "head_movement": result.head_movement,
                "frames_analyzed": result.frames_analyzed,
            },
        )
        return result


__all__ = [
    "LEFT_EYE_INDICES",
    "RIGHT_EYE_INDICES",
    "LivenessAnalyzer",
    "LivenessCheckResult",
    "LivenessSample",
    "LivenessWindow",
    "average_eye_aspect_ratio",
    "evaluate_liveness",
    "eye_aspect_ratio",
    "yaw_from_transformation",
]
