"""Closed set of outcomes produced by the identification engine.

Callers dispatch on the concrete type; every class exposes ``matched`` and
``reason`` so log lines and metrics can treat them uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

import numpy as np

if TYPE_CHECKING:
    from .liveness import LivenessCheckResult


class RejectionReason(str, Enum):
    NO_FACE_DETECTED = "NO_FACE_DETECTED"
    TOO_CLOSE = "TOO_CLOSE"
    TOO_FAR = "TOO_FAR"
    NO_BLINK_DETECTED = "NO_BLINK_DETECTED"
    NO_HEAD_MOVEMENT = "NO_HEAD_MOVEMENT"
    MULTIPLE_FACES_DETECTED = "MULTIPLE_FACES_DETECTED"
    UNVERIFIED_FACE = "UNVERIFIED_FACE"
    NOT_ENROLLED = "NOT_ENROLLED"


@dataclass(frozen=True)
class NoFace:
    matched = False
    reason = RejectionReason.NO_FACE_DETECTED


@dataclass(frozen=True)
class TooClose:
    ratio: float
    matched = False
    reason = RejectionReason.TOO_CLOSE


@dataclass(frozen=True)
class TooFar:
    ratio: float
    matched = False
    reason = RejectionReason.TOO_FAR


@dataclass(frozen=True)
class MultipleFaces:
    count: int
    matched = False
    reason = RejectionReason.MULTIPLE_FACES_DETECTED


@dataclass(frozen=True)
class SpoofRejected:
    """Liveness failed; ``reason`` is the specific signal that was missing."""

    reason: RejectionReason
    liveness: Optional["LivenessCheckResult"] = None
    matched = False


@dataclass(frozen=True)
class NotEnrolled:
    employee_id: str
    matched = False
    reason = RejectionReason.NOT_ENROLLED


@dataclass(frozen=True, eq=False)
class Unverified:
    """A live face with no enrolled match within the threshold.

    The embedding and frame are exposed so the caller can record a visitor
    sighting. ``distance`` is the nearest enrolled distance, or ``None`` when
    the tenant has no enrollments.
    """

    embedding: np.ndarray
    frame: Optional[np.ndarray] = field(default=None, repr=False)
    distance: Optional[float] = None
    matched = False
    reason = RejectionReason.UNVERIFIED_FACE


@dataclass(frozen=True)
class Verified:
    employee_id: str
    distance: float
    matched = True
    reason = None

    @property
    def confidence(self) -> float:
        return max(0.0, (1.0 - self.distance) * 100.0)


IdentificationResult = Union[
    NoFace,
    TooClose,
    TooFar,
    MultipleFaces,
    SpoofRejected,
    NotEnrolled,
    Unverified,
    Verified,
]


__all__ = [
    "IdentificationResult",
    "MultipleFaces",
    "NoFace",
    "NotEnrolled",
    "RejectionReason",
    "SpoofRejected",
    "TooClose",
    "TooFar",
    "Unverified",
    "Verified",
]
