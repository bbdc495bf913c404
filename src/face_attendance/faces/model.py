from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class FaceProfile:
    """Enrolled face of exactly one user.

    ``descriptor`` is the opaque vector produced by the client-side model.
    ``version`` starts at 1 and grows by one on every re-enrollment.
    """

    profile_id: int
    user_id: int
    descriptor: tuple[float, ...]
    quality_score: float
    confidence_threshold: float
    version: int = 1
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class FaceAttempt:
    """Audit row for one face check-in attempt that reached the matcher."""

    user_id: int
    class_id: int
    confidence: float
    success: bool
    reason: Optional[str] = None
    attendance_id: Optional[int] = None
