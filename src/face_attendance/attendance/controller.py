from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_optional_iso_date
from ..common.pagination import PageRequest
from ..common.validators import optional_number, require_descriptor, require_positive_int
from ..common.web import (
    api_login_required,
    current_user,
    get_client_ip,
    get_json_body,
    json_success,
    rate_limited,
    roles_required,
)
from ..container import Container
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import ValidationError
from .model import AttendanceEvidence, AttendanceFilters


def _evidence_from(body: dict) -> AttendanceEvidence:
    ssid = str(body.get("wifiSsid") or "").strip()
    lat = optional_number(body.get("gpsLat"), "gpsLat", lo=-90, hi=90)
    lng = optional_number(body.get("gpsLng"), "gpsLng", lo=-180, hi=180)
    if (lat is None) != (lng is None):
        raise ValidationError("gpsLat and gpsLng must be given together")
    device = body.get("deviceInfo") or request.headers.get("User-Agent")
    return AttendanceEvidence(
        wifi_ssid=ssid or None,
        gps_lat=lat,
        gps_lng=lng,
        device_info=str(device)[:500] if device else None,
        ip_address=get_client_ip(),
    )


def _parse_status(value) -> AttendanceStatus:
    try:
        return AttendanceStatus(str(value or "").upper())
    except ValueError:
        raise ValidationError("status must be PRESENT, LATE or ABSENT")


def _optional_id(value, field_name: str):
    return None if value in (None, "") else require_positive_int(value, field_name)


def register(app: Flask, container: Container) -> None:
    limiter = container.rate_limiter

    @app.route("/api/attendance/check-in", methods=["POST"], endpoint="attendance_check_in")
    @rate_limited(limiter, "face")
    @api_login_required
    @roles_required(Role.STUDENT)
    def attendance_check_in():
        body = get_json_body()
        record = container.attendance_service.record_check_in(
            user_id=current_user().user_id,
            class_id=require_positive_int(body.get("classId"), "classId"),
            descriptor=require_descriptor(body.get("faceDescriptors")),
            evidence=_evidence_from(body),
        )
        return json_success(record.to_dict(), message="Attendance recorded", status=201)

    @app.route("/api/attendance", methods=["POST"], endpoint="attendance_manual")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN, Role.LECTURER)
    def attendance_manual():
        body = get_json_body()
        record = container.attendance_service.record_manual(
            current_user=current_user(),
            user_id=require_positive_int(body.get("userId"), "userId"),
            class_id=require_positive_int(body.get("classId"), "classId"),
            status=_parse_status(body.get("status")),
            confidence=body.get("confidence"),
            evidence=_evidence_from(body),
            note=body.get("note"),
        )
        return json_success(record.to_dict(), message="Attendance recorded", status=201)

    @app.route("/api/attendance", methods=["GET"], endpoint="attendance_list")
    @rate_limited(limiter, "api")
    @api_login_required
    def attendance_list():
        args = request.args
        filters = AttendanceFilters(
            user_id=_optional_id(args.get("userId"), "userId"),
            class_id=_optional_id(args.get("classId"), "classId"),
            status=_parse_status(args.get("status")) if args.get("status") else None,
            start_date=parse_optional_iso_date(args.get("startDate")),
            end_date=parse_optional_iso_date(args.get("endDate")),
        )
        page = container.attendance_service.list_records(
            current_user=current_user(),
            filters=filters,
            page=PageRequest.parse(args.get("page"), args.get("limit")),
        )
        return json_success([r.to_dict() for r in page.items], meta=page.meta)
