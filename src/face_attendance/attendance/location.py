"""WiFi allow-list and GPS geofence checks for a check-in."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..classes.model import Room
from ..core.constants import DEFAULT_ROOM_RADIUS_M
from .model import AttendanceEvidence

EARTH_RADIUS_M = 6371000.0

WIFI_NOT_ALLOWED = "wifi not allowed"
TOO_FAR_FROM_ROOM = "too far from room"
EVIDENCE_REQUIRED = "location evidence required"


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(frozen=True)
class LocationCheck:
    passed: bool
    reason: Optional[str] = None
    distance_m: Optional[float] = None


class LocationPolicy:
    """Validate claimed evidence against a room.

    With ``require_evidence`` off, a check-in carrying no WiFi or GPS claim
    passes. With it on, a room that defines any constraint needs at least one
    claim it can verify.
    """

    def __init__(self, *, require_evidence: bool = False, default_radius_m: float = DEFAULT_ROOM_RADIUS_M):
        self._require_evidence = bool(require_evidence)
        self._default_radius_m = float(default_radius_m)

    @property
    def require_evidence(self) -> bool:
        return self._require_evidence

    def validate(self, room: Room, evidence: Optional[AttendanceEvidence]) -> LocationCheck:
        evidence = evidence or AttendanceEvidence()
        verified = False

        if evidence.wifi_ssid and room.wifi_ssids:
            if evidence.wifi_ssid not in room.wifi_ssids:
                return LocationCheck(passed=False, reason=WIFI_NOT_ALLOWED)
            verified = True

        distance = None
        if evidence.has_gps and room.has_geofence:
            distance = haversine_m(room.gps_lat, room.gps_lng, evidence.gps_lat, evidence.gps_lng)
            radius = room.radius_m if room.radius_m is not None else self._default_radius_m
            if distance > radius:
                return LocationCheck(passed=False, reason=TOO_FAR_FROM_ROOM, distance_m=distance)
            verified = True

        if self._require_evidence and room.has_constraints and not verified:
            return LocationCheck(passed=False, reason=EVIDENCE_REQUIRED, distance_m=distance)

        return LocationCheck(passed=True, distance_m=distance)
