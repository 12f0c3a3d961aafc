"""Pure embedding utilities used by identification, enrollment and visitors.

Everything here works on synthetic NumPy vectors so the matching behaviour can
be covered by fast unit tests without the DeepFace integration.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .exceptions import InvalidDescriptorError

logger = logging.getLogger(__name__)


def coerce_embedding(values, expected_length: Optional[int] = None) -> np.ndarray:
    """Return ``values`` as a finite float vector.

    Raises:
        InvalidDescriptorError: The values are not numeric, are empty, contain
            NaN/inf, or do not have ``expected_length`` elements.
    """

    try:
        vector = np.asarray(values, dtype=float).ravel()
    except (TypeError, ValueError) as exc:
        raise InvalidDescriptorError("Embedding values must be numeric.") from exc

    if vector.size == 0:
        raise InvalidDescriptorError("Embedding is empty.")
    if expected_length is not None and vector.size != expected_length:
        raise InvalidDescriptorError(
            f"Embedding has {vector.size} values, expected {expected_length}."
        )
    if not np.all(np.isfinite(vector)):
        raise InvalidDescriptorError("Embedding contains non-finite values.")
    return vector


def euclidean_distance(first: np.ndarray, second: np.ndarray) -> Optional[float]:
    """Euclidean distance, or ``None`` when the vectors cannot be compared."""

    if first.shape != second.shape:
        logger.debug("Cannot compare embeddings of shape %s and %s", first.shape, second.shape)
        return None
    return float(np.linalg.norm(first - second))


def find_closest_descriptor(
    embedding: np.ndarray,
    candidates: Iterable[Tuple[str, np.ndarray]],
) -> Optional[Tuple[str, float]]:
    """Return ``(key, distance)`` of the nearest candidate.

    Candidates whose shape does not match ``embedding`` are skipped. ``None`` is
    returned when there is nothing to compare against.
    """

    if embedding.size == 0:
        return None

    best_key: Optional[str] = None
    best_distance: Optional[float] = None

    for key, candidate in candidates:
        distance = euclidean_distance(candidate, embedding)
        if distance is None:
            continue
        if best_distance is None or distance < best_distance:
            best_key = key
            best_distance = distance

    if best_key is None or best_distance is None:
        return None
    return best_key, best_distance


def is_within_distance_threshold(distance: Optional[float], threshold: float) -> bool:
    """Return ``True`` when the distance does not exceed the configured threshold."""

    if distance is None:
        return False

    if math.isnan(distance):
        return False

    return bool(distance <= threshold)


def confidence_from_distance(distance: float) -> float:
    return max(0.0, (1.0 - float(distance)) * 100.0)


def average_embeddings(embeddings: Sequence[np.ndarray]) -> np.ndarray:
    """Component-wise mean of equally sized embeddings."""

    if not embeddings:
        raise InvalidDescriptorError("Cannot average an empty set of embeddings.")
    stacked = np.vstack([np.asarray(vector, dtype=float).ravel() for vector in embeddings])
    return stacked.mean(axis=0)


__all__ = [
    "average_embeddings",
    "coerce_embedding",
    "confidence_from_distance",
    "euclidean_distance",
    "find_closest_descriptor",
    "is_within_distance_threshold",
]
