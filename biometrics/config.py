"""Named thresholds for geometry, liveness, matching, enrollment and the kiosk loop.

Each component receives its own frozen config object instead of reading
numbers from module globals, so tests can tune boundaries without touching
settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class GeometryBounds:
    """Accepted face width as a fraction of the frame width."""

    max_face_ratio: float = 0.55
    min_face_ratio: float = 0.15

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_face_ratio < self.max_face_ratio <= 1.0:
            raise ImproperlyConfigured(
                "Face width ratios must satisfy 0 <= min < max <= 1 "
                f"(got min={self.min_face_ratio}, max={self.max_face_ratio})."
            )


@dataclass(frozen=True)
class LivenessThresholds:
    iterations: int = 15
    interval_seconds: float = 0.1
    ear_open: float = 0.25
    ear_closed: float = 0.18
    yaw_movement: float = 0.15

    def __post_init__(self) -> None:
        if self.iterations < 2:
            raise ImproperlyConfigured("Liveness needs at least two iterations.")
        if self.ear_closed >= self.ear_open:
            raise ImproperlyConfigured(
                "The closed-eye EAR threshold must be below the open-eye threshold "
                f"(got closed={self.ear_closed}, open={self.ear_open})."
            )
        if self.interval_seconds < 0 or self.yaw_movement < 0:
            raise ImproperlyConfigured("Liveness interval and yaw threshold must be >= 0.")

    @property
    def window_seconds(self) -> float:
        return self.iterations * self.interval_seconds


@dataclass(frozen=True)
class MatchingConfig:
    match_threshold: float = 0.45
    descriptor_length: int = 128

    def __post_init__(self) -> None:
        if self.match_threshold < 0:
            raise ImproperlyConfigured("The match threshold must be >= 0.")
        if self.descriptor_length < 1:
            raise ImproperlyConfigured("The descriptor length must be positive.")


@dataclass(frozen=True)
class EnrollmentConfig:
    attempts: int = 5
    min_captures: int = 3
    interval_seconds: float = 0.4

    def __post_init__(self) -> None:
        if not 1 <= self.min_captures <= self.attempts:
            raise ImproperlyConfigured(
                "Enrollment needs 1 <= min_captures <= attempts "
                f"(got min_captures={self.min_captures}, attempts={self.attempts})."
            )


@dataclass(frozen=True)
class SessionConfig:
    face_lost_frames: int = 15
    visitor_match_threshold: float = 0.45
    liveness_override_after: int = 3
    cycle_interval_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.cycle_interval_seconds < 0:
            raise ImproperlyConfigured("The kiosk cycle interval must be >= 0.")


@dataclass(frozen=True)
class RecognitionConfig:
    geometry: GeometryBounds = field(default_factory=GeometryBounds)
    liveness: LivenessThresholds = field(default_factory=LivenessThresholds)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    enrollment: EnrollmentConfig = field(default_factory=EnrollmentConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    @classmethod
    def from_settings(cls) -> "RecognitionConfig":
        """Build the configuration from the ``RECOGNITION_*`` Django settings."""

        return cls(
            geometry=GeometryBounds(
                max_face_ratio=float(getattr(settings, "RECOGNITION_FACE_MAX_WIDTH_RATIO", 0.55)),
                min_face_ratio=float(getattr(settings, "RECOGNITION_FACE_MIN_WIDTH_RATIO", 0.15)),
            ),
            liveness=LivenessThresholds(
                iterations=int(getattr(settings, "RECOGNITION_LIVENESS_ITERATIONS", 15)),
                interval_seconds=float(
                    getattr(settings, "RECOGNITION_LIVENESS_INTERVAL_SECONDS", 0.1)
                ),
                ear_open=float(getattr(settings, "RECOGNITION_EAR_OPEN_THRESHOLD", 0.25)),
                ear_closed=float(getattr(settings, "RECOGNITION_EAR_CLOSED_THRESHOLD", 0.18)),
                yaw_movement=float(
                    getattr(settings, "RECOGNITION_YAW_MOVEMENT_THRESHOLD", 0.15)
                ),
            ),
            matching=MatchingConfig(
                match_threshold=float(getattr(settings, "RECOGNITION_MATCH_THRESHOLD", 0.45)),
                descriptor_length=int(getattr(settings, "RECOGNITION_DESCRIPTOR_LENGTH", 128)),
            ),
            enrollment=EnrollmentConfig(
                attempts=int(getattr(settings, "RECOGNITION_ENROLLMENT_ATTEMPTS", 5)),
                min_captures=int(getattr(settings, "RECOGNITION_ENROLLMENT_MIN_CAPTURES", 3)),
                interval_seconds=float(
                    getattr(settings, "RECOGNITION_ENROLLMENT_INTERVAL_SECONDS", 0.4)
                ),
            ),
            session=SessionConfig(
                face_lost_frames=int(getattr(settings, "RECOGNITION_FACE_LOST_FRAMES", 15)),
                visitor_match_threshold=float(
                    getattr(settings, "RECOGNITION_VISITOR_MATCH_THRESHOLD", 0.45)
                ),
                liveness_override_after=int(
                    getattr(settings, "RECOGNITION_LIVENESS_OVERRIDE_AFTER", 3)
                ),
                cycle_interval_seconds=float(
                    getattr(settings, "RECOGNITION_CYCLE_INTERVAL_SECONDS", 0.05)
                ),
            ),
        )


__all__ = [
    "EnrollmentConfig",
    "GeometryBounds",
    "LivenessThresholds",
    "MatchingConfig",
    "RecognitionConfig",
    "SessionConfig",
]
