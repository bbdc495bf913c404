from __future__ import annotations

import logging
from typing import Any, Optional

from ..common.validators import require_descriptor, require_unit_interval
from ..core.constants import DEFAULT_CONFIDENCE_THRESHOLD, FACE_DESCRIPTOR_LENGTH
from ..core.exceptions import NotFoundError
from ..users.repository import UserRepository
from .model import FaceProfile
from .repository import FaceProfileRepository

logger = logging.getLogger(__name__)


class FaceEnrollmentService:
    def __init__(
        self,
        profiles: FaceProfileRepository,
        users: UserRepository,
        *,
        descriptor_length: int = FACE_DESCRIPTOR_LENGTH,
        default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        self._profiles = profiles
        self._users = users
        self._descriptor_length = int(descriptor_length)
        self._default_threshold = float(default_threshold)

    def enroll(
        self,
        *,
        user_id: int,
        descriptor: Any,
        quality_score: Any,
        confidence_threshold: Optional[Any] = None,
    ) -> FaceProfile:
        if not self._users.get_by_id(user_id):
            raise NotFoundError("User not found")

        vector = require_descriptor(descriptor, length=self._descriptor_length)
        quality = require_unit_interval(quality_score, "Quality score")
        threshold = (
            self._default_threshold
            if confidence_threshold is None
            else require_unit_interval(confidence_threshold, "Confidence threshold")
        )

        profile = self._profiles.upsert(
            user_id=user_id,
            descriptor=vector,
            quality_score=quality,
            confidence_threshold=threshold,
        )
        self._users.set_face_enrolled(user_id, True)
        logger.info("face enrolled user_id=%s version=%s", user_id, profile.version)
        return profile

    def get_profile(self, user_id: int) -> FaceProfile:
        profile = self._profiles.get_by_user(user_id)
        if not profile:
            raise NotFoundError("Face profile not found")
        return profile

    def delete_profile(self, user_id: int) -> None:
        if not self._profiles.delete_by_user(user_id):
            raise NotFoundError("Face profile not found")
        self._users.set_face_enrolled(user_id, False)
        logger.info("face profile deleted user_id=%s", user_id)
