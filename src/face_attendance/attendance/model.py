from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceMethod, AttendanceStatus


@dataclass(frozen=True)
class AttendanceEvidence:
    """Location and device claims sent with a check-in. Every field is optional."""

    wifi_ssid: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None

    @property
    def has_gps(self) -> bool:
        return self.gps_lat is not None and self.gps_lng is not None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one per (user, class, calendar day)."""

    attendance_id: int
    user_id: int
    class_id: int
    attendance_date: date
    check_in_time: datetime
    status: AttendanceStatus
    method: AttendanceMethod
    confidence: Optional[float] = None
    wifi_ssid: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    note: Optional[str] = None
    full_name: Optional[str] = None
    class_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.attendance_id,
            "userId": self.user_id,
            "classId": self.class_id,
            "date": self.attendance_date.isoformat(),
            "checkInTime": self.check_in_time.isoformat(),
            "status": self.status.value,
            "method": self.method.value,
            "confidence": self.confidence,
            "wifiSsid": self.wifi_ssid,
            "gpsLat": self.gps_lat,
            "gpsLng": self.gps_lng,
            "deviceInfo": self.device_info,
            "note": self.note,
            "fullName": self.full_name,
            "classCode": self.class_code,
        }


@dataclass(frozen=True)
class NewAttendance:
    """Values for an insert; the store assigns the id."""

    user_id: int
    class_id: int
    attendance_date: date
    check_in_time: datetime
    status: AttendanceStatus
    method: AttendanceMethod
    confidence: Optional[float] = None
    evidence: AttendanceEvidence = field(default_factory=AttendanceEvidence)
    note: Optional[str] = None


@dataclass(frozen=True)
class AttendanceFilters:
    user_id: Optional[int] = None
    class_id: Optional[int] = None
    lecturer_id: Optional[int] = None
    status: Optional[AttendanceStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
