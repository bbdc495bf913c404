from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..common.pagination import Page, PageRequest
from ..common.validators import optional_number, parse_hhmm, require_min_length, require_non_empty
from ..core.constants import DEFAULT_LATE_THRESHOLD_MINUTES
from ..core.enums import EnrollmentStatus, Role, UserStatus
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from ..users.model import SessionUser
from ..users.repository import UserRepository
from .model import ClassSession, Enrollment, Room
from .repository import ClassRepository, EnrollmentRepository

logger = logging.getLogger(__name__)


def _optional_int(value: Any, field_name: str, *, lo: int, hi: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} is invalid")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is invalid")
    if number < lo or (hi is not None and number > hi):
        raise ValidationError(f"{field_name} is out of range")
    return number


class ClassService:
    def __init__(self, classes: ClassRepository, enrollments: EnrollmentRepository, users: UserRepository):
        self._classes = classes
        self._enrollments = enrollments
        self._users = users

    # Rooms

    def create_room(
        self,
        *,
        current_user: SessionUser,
        name: str,
        wifi_ssids: Optional[Iterable[str]] = None,
        gps_lat: Any = None,
        gps_lng: Any = None,
        radius_m: Any = None,
        building: Optional[str] = None,
    ) -> Room:
        if current_user.role != Role.ADMIN:
            raise AuthorizationError("Admin access required")

        name = require_non_empty(name, "Room name")
        ssids = frozenset(s.strip() for s in (wifi_ssids or []) if s and str(s).strip())
        lat = optional_number(gps_lat, "GPS latitude", lo=-90, hi=90)
        lng = optional_number(gps_lng, "GPS longitude", lo=-180, hi=180)
        if (lat is None) != (lng is None):
            raise ValidationError("GPS latitude and longitude must be given together")
        radius = optional_number(radius_m, "Radius", lo=1, hi=100_000)

        try:
            room_id = self._classes.create_room(
                name=name, wifi_ssids=ssids, gps_lat=lat, gps_lng=lng, radius_m=radius, building=building
            )
        except DuplicateKeyError:
            raise ConflictError("Room name already exists")
        return self._classes.get_room(room_id)

    def list_rooms(self):
        return list(self._classes.list_rooms())

    # Classes

    def create_class(
        self,
        *,
        current_user: SessionUser,
        code: str,
        name: str,
        lecturer_id: Any,
        room_id: Any,
        start_time: str,
        end_time: str,
        day_of_week: Any = None,
        late_threshold_minutes: Any = None,
        capacity: Any = None,
        description: Optional[str] = None,
    ) -> ClassSession:
        if current_user.role != Role.ADMIN:
            raise AuthorizationError("Admin access required")

        code = require_min_length(require_non_empty(code, "Class code"), "Class code", 2).upper()
        name = require_non_empty(name, "Class name")
        start = parse_hhmm(start_time, "Start time")
        end = parse_hhmm(end_time, "End time")
        if end <= start:
            raise ValidationError("End time must be after start time")
        day = _optional_int(day_of_week, "Day of week", lo=0, hi=6)
        late = _optional_int(late_threshold_minutes, "Late threshold", lo=0)
        cap = _optional_int(capacity, "Capacity", lo=1)

        lecturer = self._users.get_by_id(_optional_int(lecturer_id, "Lecturer", lo=1) or 0)
        if not lecturer or lecturer.role != Role.LECTURER:
            raise ValidationError("Lecturer not found")
        if lecturer.status != UserStatus.ACTIVE:
            raise ValidationError("Lecturer account is not active")
        room = self._classes.get_room(_optional_int(room_id, "Room", lo=1) or 0)
        if not room:
            raise ValidationError("Room not found")

        if self._classes.get_by_code(code):
            raise ConflictError("Class code already exists")
        try:
            class_id = self._classes.create_class(
                code=code,
                name=name,
                lecturer_id=lecturer.user_id,
                room_id=room.room_id,
                day_of_week=day,
                start_time=start,
                end_time=end,
                late_threshold_minutes=DEFAULT_LATE_THRESHOLD_MINUTES if late is None else late,
                capacity=cap,
                description=(description or "").strip() or None,
            )
        except DuplicateKeyError:
            raise ConflictError("Class code already exists")

        logger.info("class created class_id=%s code=%s", class_id, code)
        return self._classes.get_by_id(class_id)

    def list_classes(
        self,
        *,
        current_user: SessionUser,
        search: Optional[str] = None,
        page: Optional[PageRequest] = None,
    ) -> Page[ClassSession]:
        page = page or PageRequest()
        scope: dict = {}
        if current_user.role == Role.STUDENT:
            scope["student_id"] = current_user.user_id
        elif current_user.role == Role.LECTURER:
            scope["lecturer_id"] = current_user.user_id

        items, total = self._classes.list_classes(
            search=(search or "").strip() or None, limit=page.limit, offset=page.offset, **scope
        )
        return Page(items=list(items), page=page.page, limit=page.limit, total=total)

    def get_class(self, class_id: int) -> ClassSession:
        session = self._classes.get_by_id(class_id)
        if not session:
            raise NotFoundError("Class not found")
        return session

    def ensure_can_manage(self, current_user: SessionUser, session: ClassSession) -> None:
        """Admins manage every class, lecturers only their own."""

        if current_user.role == Role.ADMIN:
            return
        if current_user.role == Role.LECTURER and session.lecturer_id == current_user.user_id:
            return
        raise AuthorizationError("You cannot manage this class")

    # Enrollments

    def enroll_student(self, *, current_user: SessionUser, class_id: int, user_id: int) -> Enrollment:
        session = self.get_class(class_id)
        self.ensure_can_manage(current_user, session)

        student = self._users.get_by_id(user_id)
        if not student or student.role != Role.STUDENT:
            raise ValidationError("Student not found")

        existing = self._enrollments.get(user_id, class_id)
        if existing and existing.is_active:
            raise ConflictError("Student is already enrolled in this class")
        if session.capacity is not None and self._enrollments.count_active(class_id) >= session.capacity:
            raise ValidationError("Class is full")

        enrollment = self._enrollments.upsert(user_id=user_id, class_id=class_id, status=EnrollmentStatus.ACTIVE)
        logger.info("enrolled user_id=%s class_id=%s", user_id, class_id)
        return enrollment

    def set_enrollment_status(
        self,
        *,
        current_user: SessionUser,
        class_id: int,
        user_id: int,
        status: EnrollmentStatus,
    ) -> Enrollment:
        session = self.get_class(class_id)
        self.ensure_can_manage(current_user, session)

        if not self._enrollments.get(user_id, class_id):
            raise NotFoundError("Enrollment not found")
        return self._enrollments.upsert(user_id=user_id, class_id=class_id, status=status)

    def list_enrollments(self, *, current_user: SessionUser, class_id: int) -> list[Enrollment]:
        session = self.get_class(class_id)
        self.ensure_can_manage(current_user, session)
        return list(self._enrollments.list_for_class(class_id))
