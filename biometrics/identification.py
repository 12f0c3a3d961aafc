"""1:N identification and 1:1 verification of a live face.

Checks run cheapest first: detection, face count, framing geometry, liveness
and finally nearest-neighbour matching against the enrolled descriptors.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from . import monitoring
from .config import RecognitionConfig
from .descriptor_store import DescriptorStore
from .detection import FaceDetection, FaceDetector
from .liveness import LivenessAnalyzer
from .pipeline import euclidean_distance, find_closest_descriptor, is_within_distance_threshold
from .results import (
    IdentificationResult,
    MultipleFaces,
    NoFace,
    NotEnrolled,
    SpoofRejected,
    TooClose,
    TooFar,
    Unverified,
    Verified,
)

if TYPE_CHECKING:
    import numpy as np

    from .camera import FrameSource

logger = logging.getLogger(__name__)

_OUTCOME_LABELS = {
    NoFace: "no_face",
    TooClose: "too_close",
    TooFar: "too_far",
    MultipleFaces: "multiple_faces",
    SpoofRejected: "spoof",
    NotEnrolled: "not_enrolled",
    Unverified: "unverified",
    Verified: "verified",
}


class IdentificationEngine:
    def __init__(
        self,
        detector: FaceDetector,
        liveness: LivenessAnalyzer,
        store: DescriptorStore,
        config: RecognitionConfig,
    ) -> None:
        self.detector = detector
        self.liveness = liveness
        self.store = store
        self.config = config

    def _finish(self, result: IdentificationResult, started: float) -> IdentificationResult:
        monitoring.record_identification_outcome(_OUTCOME_LABELS[type(result)])
        monitoring.observe_stage_duration(
            "recognition_iteration",
            time.perf_counter() - started,
            threshold_key="recognition_iteration",
        )
        return result

    def _detect_live_face(
        self, frame_source: "FrameSource"
    ) -> tuple[Optional[IdentificationResult], Optional[FaceDetection], Optional["np.ndarray"]]:
        """Run the gates shared by identification and verification.

        Returns either a rejection, or the single accepted detection and the
        frame it came from.
        """

        frame = frame_source.read()
        if frame is None:
            return NoFace(), None, None

        started = time.perf_counter()
        detections = self.detector.detect_all(frame)
        monitoring.observe_stage_duration("detection", time.perf_counter() - started)

        if not detections:
            return NoFace(), None, frame
        if len(detections) > 1:
            return MultipleFaces(count=len(detections)), None, frame

        detection = detections[0]
        ratio = detection.width_ratio
        if ratio > self.config.geometry.max_face_ratio:
            return TooClose(ratio=ratio), None, frame
        if ratio < self.config.geometry.min_face_ratio:
            return TooFar(ratio=ratio), None, frame

        started = time.perf_counter()
        liveness = self.liveness.check(frame_source)
        monitoring.observe_stage_duration("liveness", time.perf_counter() - started)
        if not liveness.passed:
            return SpoofRejected(reason=liveness.reason, liveness=liveness), None, frame

        return None, detection, frame

    def identify(self, frame_source: "FrameSource") -> IdentificationResult:
        """Classify the face in front of the camera against every enrolled descriptor."""

        started = time.perf_counter()
        rejection, detection, frame = self._detect_live_face(frame_source)
        if rejection is not None:
            return self._finish(rejection, started)

        match_started = time.perf_counter()
        closest = find_closest_descriptor(
            detection.embedding,
            ((item.employee_id, item.embedding) for item in self.store.descriptors()),
        )
        monitoring.observe_stage_duration("matching", time.perf_counter() - match_started)

        if closest is not None:
            employee_id, distance = closest
            if is_within_distance_threshold(distance, self.config.matching.match_threshold):
                logger.info(
                    "Face verified",
                    extra={
                        "event": "identification",
                        "status": "verified",
                        "tenant_id": self.store.tenant_id,
                        "employee_id": employee_id,
                        "distance": distance,
                    },
                )
                return self._finish(Verified(employee_id=employee_id, distance=distance), started)

        distance = closest[1] if closest is not None else None
        logger.info(
            "Live face did not match any enrollment",
            extra={
                "event": "identification",
                "status": "unverified",
                "tenant_id": self.store.tenant_id,
                "distance": distance,
            },
        )
        return self._finish(
            Unverified(embedding=detection.embedding, frame=frame, distance=distance), started
        )

    def verify_face(
        self, frame_source: "FrameSource", claimed_employee_id: str
    ) -> IdentificationResult:
        """Confirm that the live face belongs to ``claimed_employee_id``."""

        started = time.perf_counter()
        claimed_employee_id = str(claimed_employee_id)
        enrolled = self.store.get(claimed_employee_id)
        if enrolled is None:
            return self._finish(NotEnrolled(employee_id=claimed_employee_id), started)

        rejection, detection, frame = self._detect_live_face(frame_source)
        if rejection is not None:
            return self._finish(rejection, started)

        distance = euclidean_distance(enrolled, detection.embedding)
        if is_within_distance_threshold(distance, self.config.matching.match_threshold):
            return self._finish(
                Verified(employee_id=claimed_employee_id, distance=distance), started
            )
        return self._finish(
            Unverified(embedding=detection.embedding, frame=frame, distance=distance), started
        )


__all__ = ["IdentificationEngine"]
