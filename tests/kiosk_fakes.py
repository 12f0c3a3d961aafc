"""Deterministic fakes for the camera, face detector and landmark tracker.

The fakes replay scripted outputs and every pacing delay is a no-op, so
liveness windows and enrollment captures run instantly.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

import numpy as np

from biometrics.config import (
    EnrollmentConfig,
    GeometryBounds,
    LivenessThresholds,
    MatchingConfig,
    RecognitionConfig,
    SessionConfig,
)
from biometrics.detection import BoundingBox, FaceDetection, LandmarkObservation
from biometrics.liveness import LEFT_EYE_INDICES, RIGHT_EYE_INDICES

FRAME_WIDTH = 640
FRAME_HEIGHT = 480
DESCRIPTOR_LENGTH = 128
LANDMARK_COUNT = 478


def no_sleep(_seconds: float) -> None:
    return None


def make_frame() -> np.ndarray:
    return np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)


def make_embedding(seed: int = 0, scale: float = 0.05) -> np.ndarray:
    """A reproducible descriptor of the configured length."""

    rng = np.random.default_rng(seed)
    return rng.normal(0.0, scale, DESCRIPTOR_LENGTH)


def offset_embedding(base: np.ndarray, distance: float) -> np.ndarray:
    """Return ``base`` moved by exactly ``distance`` along the first axis."""

    moved = np.array(base, dtype=float)
    moved[0] += distance
    return moved


def make_detection(
    embedding: Optional[np.ndarray] = None, *, width_ratio: float = 0.3
) -> FaceDetection:
    width = int(round(FRAME_WIDTH * width_ratio))
    return FaceDetection(
        box=BoundingBox(x=100, y=80, w=width, h=width),
        embedding=make_embedding() if embedding is None else embedding,
        frame_width=FRAME_WIDTH,
        confidence=0.99,
    )


def make_landmarks(ear: float) -> np.ndarray:
    """Landmarks whose eyes both have the requested eye aspect ratio."""

    points = np.full((LANDMARK_COUNT, 2), 0.5, dtype=float)
    half_height = ear / 2.0
    for origin_x, indices in ((0.30, LEFT_EYE_INDICES), (0.60, RIGHT_EYE_INDICES)):
        p1, p2, p3, p4, p5, p6 = indices
        points[p1] = (origin_x, 0.4)
        points[p4] = (origin_x + 0.1, 0.4)
        points[p2] = (origin_x + 0.033, 0.4 + half_height * 0.1)
        points[p6] = (origin_x + 0.033, 0.4 - half_height * 0.1)
        points[p3] = (origin_x + 0.066, 0.4 + half_height * 0.1)
        points[p5] = (origin_x + 0.066, 0.4 - half_height * 0.1)
    return points


def yaw_matrix(yaw: float) -> np.ndarray:
    cos, sin = math.cos(yaw), math.sin(yaw)
    return np.array(
        [
            [cos, 0.0, sin, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [-sin, 0.0, cos, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def observation(ear: float, yaw: float = 0.0) -> LandmarkObservation:
    return LandmarkObservation(landmarks=make_landmarks(ear), transformation=yaw_matrix(yaw))


def live_observations(iterations: int = 15) -> List[LandmarkObservation]:
    """A window with one blink and a slow head turn well above the yaw threshold."""

    ears = [0.30] * iterations
    ears[5] = 0.10
    return [observation(ear, yaw=0.04 * index) for index, ear in enumerate(ears)]


def photo_observations(iterations: int = 15) -> List[LandmarkObservation]:
    """A static print: eyes open, head perfectly still."""

    return [observation(0.30, yaw=0.0) for _ in range(iterations)]


class FakeFrameSource:
    """Replays ``frames`` then keeps returning the last one (or ``None``)."""

    def __init__(self, frames: Optional[Sequence[Optional[np.ndarray]]] = None) -> None:
        self._frames = list(frames) if frames is not None else [make_frame()]
        self.reads = 0

    def read(self) -> Optional[np.ndarray]:
        index = min(self.reads, len(self._frames) - 1)
        self.reads += 1
        return self._frames[index]


class FakeDetector:
    """Returns the scripted detections for each call, repeating the last script."""

    def __init__(self, scripted: Iterable[List[FaceDetection]]) -> None:
        self.scripted = list(scripted)
        self.calls = 0

    def detect_all(self, frame: np.ndarray) -> List[FaceDetection]:
        index = min(self.calls, len(self.scripted) - 1)
        self.calls += 1
        return list(self.scripted[index])

    def show(self, *detections: FaceDetection) -> None:
        """Return ``detections`` on every following call."""

        self.scripted = [list(detections)]


class FakeTracker:
    """Replays landmark observations; the script restarts for each new window."""

    def __init__(self, observations: Sequence[Optional[LandmarkObservation]]) -> None:
        self.observations = list(observations)
        self._cursor = 0
        self.timestamps: List[int] = []

    def observe(self, frame: np.ndarray, timestamp_ms: int) -> Optional[LandmarkObservation]:
        self.timestamps.append(timestamp_ms)
        result = self.observations[self._cursor % len(self.observations)]
        self._cursor += 1
        return result


def fast_config(**session_overrides) -> RecognitionConfig:
    return RecognitionConfig(
        geometry=GeometryBounds(),
        liveness=LivenessThresholds(interval_seconds=0.0),
        matching=MatchingConfig(descriptor_length=DESCRIPTOR_LENGTH),
        enrollment=EnrollmentConfig(interval_seconds=0.0),
        session=SessionConfig(**{"cycle_interval_seconds": 0.0, **session_overrides}),
    )
