"""Adapters around the face detector/embedder and the landmark tracker.

DeepFace and MediaPipe are imported lazily inside the adapters: loading either
pulls in TensorFlow or native graph runtimes, which the management commands
only need once a camera session actually starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import cv2
import numpy as np
from django.conf import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    w: int
    h: int

    @classmethod
    def from_facial_area(cls, area: Optional[Dict[str, Any]]) -> Optional["BoundingBox"]:
        """Build a box from DeepFace's ``facial_area`` mapping."""

        if not isinstance(area, dict):
            return None
        try:
            x = int(area.get("x", 0) or 0)
            y = int(area.get("y", 0) or 0)
            w = int(area.get("w", 0) or 0)
            h = int(area.get("h", 0) or 0)
        except (TypeError, ValueError):
            return None
        if w <= 0 or h <= 0:
            return None
        return cls(x=x, y=y, w=w, h=h)


@dataclass(frozen=True, eq=False)
class FaceDetection:
    """A located face with its embedding."""

    box: BoundingBox
    embedding: np.ndarray
    frame_width: int
    confidence: Optional[float] = None

    @property
    def width_ratio(self) -> float:
        if self.frame_width <= 0:
            return 0.0
        return self.box.w / float(self.frame_width)


@runtime_checkable
class FaceDetector(Protocol):
    def detect_all(self, frame: np.ndarray) -> List[FaceDetection]:
        """Return every face found in ``frame`` (possibly none)."""


@dataclass(frozen=True, eq=False)
class LandmarkObservation:
    """Facial landmarks (normalised ``x, y`` per point) and the head pose matrix."""

    landmarks: np.ndarray
    transformation: Optional[np.ndarray] = None


@runtime_checkable
class LandmarkTracker(Protocol):
    def observe(self, frame: np.ndarray, timestamp_ms: int) -> Optional[LandmarkObservation]:
        """Return landmarks for the first face in ``frame`` or ``None``."""


def _frame_width(frame: np.ndarray) -> int:
    return int(frame.shape[1]) if frame.ndim >= 2 else 0


@dataclass
class DeepFaceDetector:
    """Detect faces and compute embeddings with ``DeepFace.represent``."""

    model_name: str = field(
        default_factory=lambda: getattr(settings, "RECOGNITION_DEEPFACE_MODEL", "Facenet")
    )
    detector_backend: str = field(
        default_factory=lambda: getattr(settings, "RECOGNITION_DEEPFACE_DETECTOR", "opencv")
    )
    min_confidence: float = field(
        default_factory=lambda: float(getattr(settings, "RECOGNITION_MIN_FACE_CONFIDENCE", 0.5))
    )

    def detect_all(self, frame: np.ndarray) -> List[FaceDetection]:
        if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
            return []

        from deepface import DeepFace

        try:
            representations = DeepFace.represent(
                img_path=frame,
                model_name=self.model_name,
                detector_backend=self.detector_backend,
                enforce_detection=False,
            )
        except ValueError as exc:
            # DeepFace raises ValueError for frames it cannot process.
            logger.debug("DeepFace could not process frame: %s", exc)
            return []

        if isinstance(representations, dict):
            representations = [representations]

        detections: List[FaceDetection] = []
        width = _frame_width(frame)
        for representation in representations or []:
            if not isinstance(representation, dict):
                continue
            confidence = representation.get("face_confidence")
            if confidence is not None and float(confidence) < self.min_confidence:
                continue
            box = BoundingBox.from_facial_area(representation.get("facial_area"))
            embedding = representation.get("embedding")
            if box is None or embedding is None:
                continue
            try:
                vector = np.array([float(value) for value in embedding], dtype=float)
            except (TypeError, ValueError):
                logger.debug("Unable to coerce embedding values to floats")
                continue
            detections.append(
                FaceDetection(
                    box=box,
                    embedding=vector,
                    frame_width=width,
                    confidence=float(confidence) if confidence is not None else None,
                )
            )
        return detections


class MediaPipeLandmarkTracker:
    """MediaPipe Face Landmarker in VIDEO mode with head pose matrices enabled."""

    def __init__(self, model_path: str | Path | None = None) -> None:
        self.model_path = Path(
            model_path or getattr(settings, "RECOGNITION_FACE_LANDMARKER_MODEL")
        )
        self._landmarker = None
        self._last_timestamp_ms = -1

    def _get_landmarker(self):
        if self._landmarker is None:
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision

            options = vision.FaceLandmarkerOptions(
                base_options=mp_tasks.BaseOptions(model_asset_path=str(self.model_path)),
                running_mode=vision.RunningMode.VIDEO,
                num_faces=1,
                output_facial_transformation_matrixes=True,
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
            logger.info("Loaded face landmarker model from %s", self.model_path)
        return self._landmarker

    def observe(self, frame: np.ndarray, timestamp_ms: int) -> Optional[LandmarkObservation]:
        if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
            return None

        import mediapipe as mp

        # VIDEO mode rejects timestamps that do not strictly increase.
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self._get_landmarker().detect_for_video(image, timestamp_ms)

        if not result.face_landmarks:
            return None

        points = np.array(
            [[landmark.x, landmark.y] for landmark in result.face_landmarks[0]],
            dtype=float,
        )
        transformation = None
        matrices = getattr(result, "facial_transformation_matrixes", None)
        if matrices:
            transformation = np.asarray(matrices[0], dtype=float).reshape(4, 4)
        return LandmarkObservation(landmarks=points, transformation=transformation)

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        self._last_timestamp_ms = -1


__all__ = [
    "BoundingBox",
    "DeepFaceDetector",
    "FaceDetection",
    "FaceDetector",
    "LandmarkObservation",
    "LandmarkTracker",
    "MediaPipeLandmarkTracker",
]
