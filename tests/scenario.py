"""A small campus: one lecturer, one enrolled student with a face profile, one class."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from fakes import (
    InMemoryAttendance,
    InMemoryClasses,
    InMemoryEnrollments,
    InMemoryFaceAttempts,
    InMemoryFaceProfiles,
    InMemoryUsers,
    make_class,
    make_room,
)
from face_attendance.attendance.location import LocationPolicy
from face_attendance.attendance.service import AttendanceService
from face_attendance.core.enums import EnrollmentStatus, Role
from face_attendance.faces.matcher import FaceMatcher
from face_attendance.users.model import SessionUser

# 0.1, 0.2, ..., 0.9, 0.1, ... (128 values)
ENROLLED_DESCRIPTOR = tuple(round(0.1 * (i % 9 + 1), 1) for i in range(128))

# Tuesday
CLASS_DAY = datetime(2025, 1, 7, 9, 10)


@dataclass
class World:
    users: InMemoryUsers
    classes: InMemoryClasses
    enrollments: InMemoryEnrollments
    profiles: InMemoryFaceProfiles
    attendance: InMemoryAttendance
    lecturer: SessionUser
    student: SessionUser
    admin: SessionUser
    class_id: int
    attempts: InMemoryFaceAttempts = field(default_factory=InMemoryFaceAttempts)

    def service(self, **kwargs) -> AttendanceService:
        kwargs.setdefault("matcher", FaceMatcher(1.0))
        kwargs.setdefault("location_policy", LocationPolicy())
        kwargs.setdefault("attempts", self.attempts)
        return AttendanceService(self.attendance, self.enrollments, self.profiles, self.classes, **kwargs)


def _session(user) -> SessionUser:
    return SessionUser(user_id=user.user_id, email=user.email, full_name=user.full_name, role=user.role)


def build_world(attendance: InMemoryAttendance | None = None) -> World:
    users = InMemoryUsers()
    lecturer = users.add(email="lecturer@uni.edu", role=Role.LECTURER, full_name="Dr. Lee")
    student = users.add(email="student@uni.edu", role=Role.STUDENT, student_code="S001", face_enrolled=True)
    admin = users.add(email="admin@uni.edu", role=Role.ADMIN)

    classes = InMemoryClasses()
    classes.add_room(make_room(1))
    session = classes.add_class(make_class(1, lecturer_id=lecturer.user_id, room_id=1))

    enrollments = InMemoryEnrollments(classes)
    enrollments.upsert(user_id=student.user_id, class_id=session.class_id, status=EnrollmentStatus.ACTIVE)

    profiles = InMemoryFaceProfiles()
    profiles.upsert(
        user_id=student.user_id, descriptor=ENROLLED_DESCRIPTOR, quality_score=0.9, confidence_threshold=0.8
    )

    attendance = attendance or InMemoryAttendance()
    attendance.classes = classes

    return World(
        users=users,
        classes=classes,
        enrollments=enrollments,
        profiles=profiles,
        attendance=attendance,
        lecturer=_session(lecturer),
        student=_session(student),
        admin=_session(admin),
        class_id=session.class_id,
    )


