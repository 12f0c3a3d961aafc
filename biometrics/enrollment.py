"""Capture several samples of a face and enroll their average."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List

import numpy as np

from .config import EnrollmentConfig
from .descriptor_store import DescriptorStore
from .detection import FaceDetector
from .exceptions import EnrollmentError
from .pipeline import average_embeddings

if TYPE_CHECKING:
    from .camera import FrameSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class EnrollmentOutcome:
    employee_id: str
    descriptor: np.ndarray
    captures: int
    attempts: int


class EnrollmentWorkflow:
    def __init__(
        self,
        detector: FaceDetector,
        store: DescriptorStore,
        config: EnrollmentConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.detector = detector
        self.store = store
        self.config = config
        self._sleep = sleep

    def capture_embeddings(self, frame_source: "FrameSource") -> List[np.ndarray]:
        """Sample the feed at a fixed pace and keep every clear single-face embedding.

        Attempts where no face, several faces, or an embedding of the wrong
        length is found are skipped rather than retried.
        """

        captured: List[np.ndarray] = []
        for attempt in range(1, self.config.attempts + 1):
            self._sleep(self.config.interval_seconds)
            frame = frame_source.read()
            if frame is None:
                logger.debug("Enrollment attempt %d had no frame", attempt)
                continue
            detections = self.detector.detect_all(frame)
            if len(detections) != 1:
                logger.debug(
                    "Enrollment attempt %d skipped: %d faces", attempt, len(detections)
                )
                continue
            embedding = np.asarray(detections[0].embedding, dtype=float).ravel()
            if embedding.size != self.store.descriptor_length:
                logger.debug(
                    "Enrollment attempt %d skipped: embedding has %d values",
                    attempt,
                    embedding.size,
                )
                continue
            captured.append(embedding)
        return captured

    def enroll(self, employee_id: str, frame_source: "FrameSource") -> EnrollmentOutcome:
        """Enroll ``employee_id`` from the live feed.

        Raises:
            EnrollmentError: Fewer than ``min_captures`` clear captures were
                collected. Nothing is written in that case.
            DescriptorStoreError: The averaged descriptor could not be saved.
        """

        employee_id = str(employee_id)
        captured = self.capture_embeddings(frame_source)
        if len(captured) < self.config.min_captures:
            logger.warning(
                "Enrollment failed",
                extra={
                    "event": "enrollment",
                    "status": "insufficient_captures",
                    "tenant_id": self.store.tenant_id,
                    "employee_id": employee_id,
                    "captures": len(captured),
                    "required": self.config.min_captures,
                },
            )
            raise EnrollmentError(
                "Not enough clear face captures "
                f"({len(captured)} of {self.config.min_captures} required).",
                attempts=self.config.attempts,
                captures=len(captured),
            )

        descriptor = average_embeddings(captured)
        self.store.upsert(employee_id, descriptor, capture_count=len(captured))
        logger.info(
            "Enrollment completed",
            extra={
                "event": "enrollment",
                "status": "success",
                "tenant_id": self.store.tenant_id,
                "employee_id": employee_id,
                "captures": len(captured),
            },
        )
        return EnrollmentOutcome(
            employee_id=employee_id,
            descriptor=descriptor,
            captures=len(captured),
            attempts=self.config.attempts,
        )


__all__ = ["EnrollmentOutcome", "EnrollmentWorkflow"]
