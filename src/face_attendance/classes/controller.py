from __future__ import annotations

from flask import Flask, request

from ..common.pagination import PageRequest
from ..common.validators import require_positive_int
from ..common.web import (
    api_login_required,
    current_user,
    get_json_body,
    json_success,
    rate_limited,
    roles_required,
)
from ..container import Container
from ..core.enums import EnrollmentStatus, Role
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    limiter = container.rate_limiter

    @app.route("/api/rooms", methods=["GET"], endpoint="rooms_list")
    @rate_limited(limiter, "api")
    @api_login_required
    def rooms_list():
        return json_success([r.to_dict() for r in container.class_service.list_rooms()])

    @app.route("/api/rooms", methods=["POST"], endpoint="rooms_create")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN)
    def rooms_create():
        body = get_json_body()
        ssids = body.get("wifiSsids") or []
        if not isinstance(ssids, list):
            raise ValidationError("wifiSsids must be a list")
        room = container.class_service.create_room(
            current_user=current_user(),
            name=body.get("name", ""),
            building=body.get("building"),
            wifi_ssids=[str(s) for s in ssids],
            gps_lat=body.get("gpsLat"),
            gps_lng=body.get("gpsLng"),
            radius_m=body.get("radiusM"),
        )
        return json_success(room.to_dict(), message="Room created", status=201)

    @app.route("/api/classes", methods=["GET"], endpoint="classes_list")
    @rate_limited(limiter, "api")
    @api_login_required
    def classes_list():
        page = container.class_service.list_classes(
            current_user=current_user(),
            search=request.args.get("search"),
            page=PageRequest.parse(request.args.get("page"), request.args.get("limit")),
        )
        return json_success([c.to_dict() for c in page.items], meta=page.meta)

    @app.route("/api/classes", methods=["POST"], endpoint="classes_create")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN)
    def classes_create():
        body = get_json_body()
        session = container.class_service.create_class(
            current_user=current_user(),
            code=body.get("code", ""),
            name=body.get("name", ""),
            description=body.get("description"),
            lecturer_id=body.get("lecturerId"),
            room_id=body.get("roomId"),
            day_of_week=body.get("dayOfWeek"),
            start_time=body.get("startTime", ""),
            end_time=body.get("endTime", ""),
            late_threshold_minutes=body.get("lateThresholdMinutes"),
            capacity=body.get("capacity"),
        )
        return json_success(session.to_dict(), message="Class created", status=201)

    @app.route("/api/classes/<int:class_id>/enrollments", methods=["GET"], endpoint="class_enrollments_list")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN, Role.LECTURER)
    def class_enrollments_list(class_id: int):
        items = container.class_service.list_enrollments(current_user=current_user(), class_id=class_id)
        return json_success([e.to_dict() for e in items])

    @app.route("/api/classes/<int:class_id>/enrollments", methods=["POST"], endpoint="class_enrollments_create")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN, Role.LECTURER)
    def class_enrollments_create(class_id: int):
        body = get_json_body()
        enrollment = container.class_service.enroll_student(
            current_user=current_user(),
            class_id=class_id,
            user_id=require_positive_int(body.get("userId"), "userId"),
        )
        return json_success(enrollment.to_dict(), message="Student enrolled", status=201)

    @app.route(
        "/api/classes/<int:class_id>/enrollments/<int:user_id>",
        methods=["PATCH"],
        endpoint="class_enrollments_update",
    )
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN, Role.LECTURER)
    def class_enrollments_update(class_id: int, user_id: int):
        try:
            status = EnrollmentStatus(str(get_json_body().get("status", "")).upper())
        except ValueError:
            raise ValidationError("status must be ACTIVE or INACTIVE")
        enrollment = container.class_service.set_enrollment_status(
            current_user=current_user(), class_id=class_id, user_id=user_id, status=status
        )
        return json_success(enrollment.to_dict(), message="Enrollment updated")
