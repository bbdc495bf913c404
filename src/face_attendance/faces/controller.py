from __future__ import annotations

from flask import Flask

from ..common.web import api_login_required, current_user, get_json_body, json_success, rate_limited
from ..container import Container
from .model import FaceProfile


def _profile_dict(profile: FaceProfile) -> dict:
    # the descriptor itself never leaves the server
    return {
        "userId": profile.user_id,
        "qualityScore": profile.quality_score,
        "confidenceThreshold": profile.confidence_threshold,
        "version": profile.version,
        "updatedAt": profile.updated_at.isoformat() if profile.updated_at else None,
    }


def register(app: Flask, container: Container) -> None:
    limiter = container.rate_limiter

    @app.route("/api/face/enrollment", methods=["GET"], endpoint="face_enrollment_get")
    @rate_limited(limiter, "api")
    @api_login_required
    def face_enrollment_get():
        profile = container.face_service.get_profile(current_user().user_id)
        return json_success({"profile": _profile_dict(profile)})

    @app.route("/api/face/enrollment", methods=["POST"], endpoint="face_enrollment_post")
    @rate_limited(limiter, "face")
    @api_login_required
    def face_enrollment_post():
        body = get_json_body()
        profile = container.face_service.enroll(
            user_id=current_user().user_id,
            descriptor=body.get("faceDescriptors"),
            quality_score=body.get("qualityScore"),
            confidence_threshold=body.get("confidenceThreshold"),
        )
        return json_success({"profile": _profile_dict(profile)}, message="Face enrolled successfully", status=201)

    @app.route("/api/face/enrollment", methods=["DELETE"], endpoint="face_enrollment_delete")
    @rate_limited(limiter, "api")
    @api_login_required
    def face_enrollment_delete():
        container.face_service.delete_profile(current_user().user_id)
        return json_success(message="Face profile deleted")
