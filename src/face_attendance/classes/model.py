from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Optional

from ..core.enums import EnrollmentStatus


@dataclass(frozen=True)
class Room:
    """Physical room a class takes place in.

    An empty ``wifi_ssids`` set means "no WiFi restriction"; a missing GPS
    centre means "no geofence".
    """

    room_id: int
    name: str
    wifi_ssids: frozenset[str] = field(default_factory=frozenset)
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    radius_m: Optional[float] = None
    building: Optional[str] = None

    @property
    def has_geofence(self) -> bool:
        return self.gps_lat is not None and self.gps_lng is not None

    @property
    def has_constraints(self) -> bool:
        return bool(self.wifi_ssids) or self.has_geofence

    def to_dict(self) -> dict:
        return {
            "id": self.room_id,
            "name": self.name,
            "building": self.building,
            "wifiSsids": sorted(self.wifi_ssids),
            "gpsLat": self.gps_lat,
            "gpsLng": self.gps_lng,
            "radiusM": self.radius_m,
        }


@dataclass(frozen=True)
class ClassSession:
    """A recurring weekly class. ``day_of_week`` follows ``date.weekday()`` (0 = Monday)."""

    class_id: int
    code: str
    name: str
    lecturer_id: int
    room_id: int
    start_time: time
    end_time: time
    day_of_week: Optional[int] = None
    late_threshold_minutes: int = 10
    capacity: Optional[int] = None
    description: Optional[str] = None
    is_active: bool = True
    lecturer_name: Optional[str] = None
    enrolled_count: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.class_id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "lecturerId": self.lecturer_id,
            "lecturerName": self.lecturer_name,
            "roomId": self.room_id,
            "dayOfWeek": self.day_of_week,
            "startTime": self.start_time.strftime("%H:%M"),
            "endTime": self.end_time.strftime("%H:%M"),
            "lateThresholdMinutes": self.late_threshold_minutes,
            "capacity": self.capacity,
            "enrolledCount": self.enrolled_count,
        }


@dataclass(frozen=True)
class ClassWithRoom:
    session: ClassSession
    room: Room


@dataclass(frozen=True)
class Enrollment:
    enrollment_id: int
    user_id: int
    class_id: int
    status: EnrollmentStatus
    enrolled_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.enrollment_id,
            "userId": self.user_id,
            "classId": self.class_id,
            "status": self.status.value,
            "enrolledAt": self.enrolled_at.isoformat() if self.enrolled_at else None,
        }
