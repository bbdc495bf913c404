from __future__ import annotations

from datetime import time
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import EnrollmentStatus
from .model import ClassSession, ClassWithRoom, Enrollment, Room


class ClassRepository(Protocol):
    def get_by_id(self, class_id: int) -> Optional[ClassSession]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[ClassSession]:
        raise NotImplementedError

    def get_with_room(self, class_id: int) -> Optional[ClassWithRoom]:
        raise NotImplementedError

    def list_classes(
        self,
        *,
        lecturer_id: Optional[int] = None,
        student_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int,
        offset: int,
    ) -> tuple[Sequence[ClassSession], int]:
        """``student_id`` restricts to classes where that student holds an ACTIVE enrollment."""

        raise NotImplementedError

    def create_class(
        self,
        *,
        code: str,
        name: str,
        lecturer_id: int,
        room_id: int,
        day_of_week: Optional[int],
        start_time: time,
        end_time: time,
        late_threshold_minutes: int,
        capacity: Optional[int] = None,
        description: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def get_room(self, room_id: int) -> Optional[Room]:
        raise NotImplementedError

    def list_rooms(self) -> Sequence[Room]:
        raise NotImplementedError

    def create_room(
        self,
        *,
        name: str,
        wifi_ssids: Iterable[str],
        gps_lat: Optional[float],
        gps_lng: Optional[float],
        radius_m: Optional[float],
        building: Optional[str] = None,
    ) -> int:
        raise NotImplementedError


class EnrollmentRepository(Protocol):
    def get(self, user_id: int, class_id: int) -> Optional[Enrollment]:
        raise NotImplementedError

    def get_active(self, user_id: int, class_id: int) -> Optional[Enrollment]:
        raise NotImplementedError

    def upsert(self, *, user_id: int, class_id: int, status: EnrollmentStatus) -> Enrollment:
        raise NotImplementedError

    def count_active(self, class_id: int) -> int:
        raise NotImplementedError

    def list_for_class(self, class_id: int) -> Sequence[Enrollment]:
        raise NotImplementedError
