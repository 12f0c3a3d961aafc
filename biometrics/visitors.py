"""Record sightings of live faces that match no enrolled employee."""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, Optional

import cv2
import numpy as np
from cryptography.fernet import InvalidToken
from django.db import DatabaseError, transaction
from django.utils import timezone

from src.common import FaceDataEncryption

from .exceptions import VisitorCaptureError
from .models import Visitor, VisitorCapture
from .pipeline import euclidean_distance

logger = logging.getLogger(__name__)

SNAPSHOT_JPEG_QUALITY = 80


def encode_snapshot(frame: Optional[np.ndarray]) -> bytes:
    """JPEG-encode ``frame``; an empty payload when there is nothing to encode."""

    if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
        return b""
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), SNAPSHOT_JPEG_QUALITY])
    if not ok:
        logger.warning("Could not encode visitor snapshot")
        return b""
    return buffer.tobytes()


class VisitorTracker:
    """Per-session debounce plus persistence of visitor sightings.

    While an unknown face stays in front of the camera, repeated sightings
    within ``match_threshold`` of the last captured descriptor are ignored.
    :meth:`reset` is called once the face has left the frame.
    """

    def __init__(
        self,
        tenant_id: str,
        match_threshold: float = 0.45,
        *,
        encryption: Optional[FaceDataEncryption] = None,
        clock: Callable[[], _dt.datetime] = timezone.now,
    ) -> None:
        self.tenant_id = str(tenant_id)
        self.match_threshold = match_threshold
        self._encryption = encryption or FaceDataEncryption()
        self._clock = clock
        self._last_descriptor: Optional[np.ndarray] = None

    def reset(self) -> None:
        self._last_descriptor = None

    def is_repeat(self, embedding: np.ndarray) -> bool:
        if self._last_descriptor is None:
            return False
        distance = euclidean_distance(self._last_descriptor, embedding)
        return distance is not None and distance < self.match_threshold

    def _find_visitor(self, embedding: np.ndarray) -> Optional[Visitor]:
        best: Optional[Visitor] = None
        best_distance: Optional[float] = None
        for visitor in Visitor.objects.select_for_update().filter(tenant_id=self.tenant_id):
            try:
                stored = self._encryption.decrypt_descriptor(
                    bytes(visitor.encrypted_descriptor), expected_length=embedding.size
                )
            except (InvalidToken, ValueError, TypeError):
                logger.warning(
                    "Skipping visitor with unreadable descriptor",
                    extra={"event": "visitor_skipped", "visitor_id": visitor.pk},
                )
                continue
            distance = euclidean_distance(stored, embedding)
            if distance is None or distance >= self.match_threshold:
                continue
            if best_distance is None or distance < best_distance:
                best, best_distance = visitor, distance
        return best

    def record(
        self, embedding: np.ndarray, frame: Optional[np.ndarray] = None
    ) -> Optional[VisitorCapture]:
        """Persist a sighting unless it repeats the face still in front of the camera.

        Returns the new capture, or ``None`` when the sighting was debounced.

        Raises:
            VisitorCaptureError: The sighting could not be written.
        """

        embedding = np.asarray(embedding, dtype=float).ravel()
        if self.is_repeat(embedding):
            return None

        now = self._clock()
        snapshot = encode_snapshot(frame)
        try:
            with transaction.atomic():
                visitor = self._find_visitor(embedding)
                if visitor is None:
                    visitor = Visitor.objects.create(
                        tenant_id=self.tenant_id,
                        encrypted_descriptor=self._encryption.encrypt_descriptor(embedding),
                        photo=snapshot,
                        total_visits=1,
                        first_seen_at=now,
                        last_seen_at=now,
                    )
                    created = True
                else:
                    created = False
                    if timezone.localdate(visitor.last_seen_at) != timezone.localdate(now):
                        visitor.total_visits += 1
                    visitor.last_seen_at = now
                    visitor.save(update_fields=["total_visits", "last_seen_at"])

                last_entry = (
                    VisitorCapture.objects.filter(visitor=visitor)
                    .order_by("-captured_at", "-pk")
                    .values_list("entry", flat=True)
                    .first()
                )
                entry = (
                    VisitorCapture.Entry.OUT
                    if last_entry == VisitorCapture.Entry.IN
                    else VisitorCapture.Entry.IN
                )
                capture = VisitorCapture.objects.create(
                    visitor=visitor, entry=entry, snapshot=snapshot, captured_at=now
                )
        except DatabaseError as exc:
            raise VisitorCaptureError("Could not record the visitor sighting") from exc

        self._last_descriptor = embedding
        logger.info(
            "Visitor sighting recorded",
            extra={
                "event": "visitor_capture",
                "tenant_id": self.tenant_id,
                "visitor_id": visitor.pk,
                "entry": entry,
                "new_visitor": created,
            },
        )
        return capture


__all__ = ["VisitorTracker", "encode_snapshot"]
