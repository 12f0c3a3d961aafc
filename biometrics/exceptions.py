"""Exceptions raised by the face-verification components.

Rejections such as "no face" or "no blink" are classification outcomes and are
returned as result objects; only operator-actionable failures and persistence
errors are raised.
"""

from __future__ import annotations


class BiometricsError(Exception):
    """Base class for biometrics failures."""


class DescriptorStoreError(BiometricsError):
    """Reading or writing enrolled descriptors failed."""


class StoreNotInitialised(BiometricsError):
    """The descriptor store was used before ``init(tenant_id)``."""


class InvalidDescriptorError(BiometricsError, ValueError):
    """An embedding has the wrong length or contains non-finite values."""


class EnrollmentError(BiometricsError):
    """Enrollment could not collect enough clear captures."""

    def __init__(self, message: str, *, attempts: int, captures: int) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.captures = captures


class VisitorCaptureError(BiometricsError):
    """Persisting a visitor sighting failed."""
