from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import FaceAttempt, FaceProfile


class FaceProfileRepository(Protocol):
    def get_by_user(self, user_id: int) -> Optional[FaceProfile]:
        raise NotImplementedError

    def upsert(
        self,
        *,
        user_id: int,
        descriptor: Sequence[float],
        quality_score: float,
        confidence_threshold: float,
    ) -> FaceProfile:
        """Create the profile (version 1) or replace it and bump the version."""

        raise NotImplementedError

    def delete_by_user(self, user_id: int) -> bool:
        raise NotImplementedError


class FaceAttemptRepository(Protocol):
    def record(self, attempt: FaceAttempt) -> int:
        raise NotImplementedError
