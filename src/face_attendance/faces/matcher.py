"""Descriptor comparison.

Confidence is the normalised Euclidean distance::

    confidence = max(0, 1 - distance / max_distance)

rounded to 3 decimals. ``max_distance`` comes from the ``FACE_MAX_DISTANCE``
setting so each deployment can match it to its descriptor model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..core.constants import DEFAULT_FACE_MAX_DISTANCE
from ..core.exceptions import DescriptorLengthMismatch
from .model import FaceProfile


def _as_vectors(stored: Sequence[float], candidate: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    s = np.asarray(stored, dtype=np.float64)
    c = np.asarray(candidate, dtype=np.float64)
    if s.ndim != 1 or c.ndim != 1 or s.size == 0 or c.size == 0 or s.size != c.size:
        raise DescriptorLengthMismatch()
    return s, c


def euclidean_distance(stored: Sequence[float], candidate: Sequence[float]) -> float:
    s, c = _as_vectors(stored, candidate)
    return float(np.linalg.norm(s - c))


def confidence_score(
    stored: Sequence[float],
    candidate: Sequence[float],
    *,
    max_distance: float = DEFAULT_FACE_MAX_DISTANCE,
) -> float:
    if max_distance <= 0:
        raise ValueError("max_distance must be positive")
    distance = euclidean_distance(stored, candidate)
    return round(max(0.0, 1.0 - distance / max_distance), 3)


@dataclass(frozen=True)
class MatchResult:
    confidence: float
    threshold: float

    @property
    def matched(self) -> bool:
        return self.confidence >= self.threshold


class FaceMatcher:
    def __init__(self, max_distance: float = DEFAULT_FACE_MAX_DISTANCE):
        if max_distance <= 0:
            raise ValueError("max_distance must be positive")
        self._max_distance = float(max_distance)

    @property
    def max_distance(self) -> float:
        return self._max_distance

    def score(self, stored: Sequence[float], candidate: Sequence[float]) -> float:
        return confidence_score(stored, candidate, max_distance=self._max_distance)

    def match(self, profile: FaceProfile, candidate: Sequence[float]) -> MatchResult:
        return MatchResult(
            confidence=self.score(profile.descriptor, candidate),
            threshold=profile.confidence_threshold,
        )
