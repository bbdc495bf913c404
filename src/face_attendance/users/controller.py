from __future__ import annotations

from flask import Flask, request, session

from ..common.pagination import PageRequest
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
from ..core.enums import Role, UserStatus
from ..core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from ..logging_config import security_logger


def _parse_role(value) -> Role:
    try:
        return Role(str(value or Role.STUDENT.value).upper())
    except ValueError:
        raise ValidationError("Invalid role")


def _parse_enum(enum_cls, value, label: str):
    if value in (None, ""):
        return None
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid {label}")


def register(app: Flask, container: Container) -> None:
    limiter = container.rate_limiter

    @app.route("/api/auth/register", methods=["POST"], endpoint="auth_register")
    @rate_limited(limiter, "auth")
    def auth_register():
        body = get_json_body()
        user = container.account_service.register(
            email=body.get("email", ""),
            full_name=body.get("fullName", ""),
            student_code=body.get("studentCode", ""),
            phone=body.get("phone", ""),
            password=body.get("password", ""),
            role=_parse_role(body.get("role")),
        )
        return json_success(
            {"user": user.to_public_dict()},
            message="Registration successful. Please check your email to verify your account.",
            status=201,
        )

    @app.route("/api/auth/verify-email", methods=["GET", "POST"], endpoint="auth_verify_email")
    @rate_limited(limiter, "auth")
    def auth_verify_email():
        token = request.args.get("token") if request.method == "GET" else get_json_body().get("token")
        user = container.account_service.verify_email(token or "")
        return json_success({"user": user.to_public_dict()}, message="Email verified successfully")

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    @rate_limited(limiter, "auth")
    def auth_login():
        body = get_json_body()
        email = str(body.get("email", ""))
        try:
            s_user = container.auth_service.authenticate(email, str(body.get("password", "")))
        except (AuthenticationError, AuthorizationError):
            security_logger.log_login(email, get_client_ip(), success=False)
            raise

        session.clear()
        session.permanent = bool(body.get("rememberMe"))
        session.update(s_user.to_session())
        security_logger.log_login(s_user.email, get_client_ip())

        user = container.auth_service.get_current_user(s_user.user_id)
        return json_success({"user": user.to_public_dict()}, message="Login successful")

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    def auth_logout():
        if "user_id" in session:
            security_logger.log_logout(session.get("user_id"), get_client_ip())
        session.clear()
        return json_success(message="Logged out")

    @app.route("/api/auth/forgot-password", methods=["POST"], endpoint="auth_forgot_password")
    @rate_limited(limiter, "email")
    def auth_forgot_password():
        container.account_service.request_password_reset(get_json_body().get("email", ""))
        return json_success(message="If an account exists with this email, a reset link has been sent.")

    @app.route("/api/auth/reset-password", methods=["POST"], endpoint="auth_reset_password")
    @rate_limited(limiter, "auth")
    def auth_reset_password():
        body = get_json_body()
        if body.get("password") != body.get("confirmPassword", body.get("password")):
            raise ValidationError("Passwords do not match", errors={"confirmPassword": ["Passwords do not match"]})
        container.account_service.reset_password(body.get("token", ""), body.get("password", ""))
        return json_success(message="Password has been reset. You can now sign in.")

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @api_login_required
    def auth_me():
        user = container.auth_service.get_current_user(current_user().user_id)
        return json_success({"user": user.to_public_dict()})

    @app.route("/api/admin/users", methods=["GET"], endpoint="admin_users")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN)
    def admin_users():
        page = container.user_service.list_users(
            current_role=current_user().role,
            status=_parse_enum(UserStatus, request.args.get("status"), "status filter"),
            role=_parse_enum(Role, request.args.get("role"), "role filter"),
            search=request.args.get("search"),
            page=PageRequest.parse(request.args.get("page"), request.args.get("limit")),
        )
        return json_success([u.to_public_dict() for u in page.items], meta=page.meta)

    @app.route("/api/admin/users/<int:user_id>/decision", methods=["POST"], endpoint="admin_user_decision")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN)
    def admin_user_decision(user_id: int):
        body = get_json_body()
        approve = body.get("approved")
        if not isinstance(approve, bool):
            raise ValidationError("approved must be true or false")
        admin = current_user()
        user = container.user_service.decide_registration(
            current_role=admin.role,
            admin_id=admin.user_id,
            user_id=user_id,
            approve=approve,
            reason=body.get("reason"),
        )
        security_logger.log_admin_action(
            admin.user_id, "approve_user" if approve else "reject_user", f"user_id={user_id}"
        )
        return json_success(
            {"user": user.to_public_dict()},
            message="User approved successfully" if approve else "User rejected successfully",
        )

    @app.route("/api/admin/users/<int:user_id>", methods=["PUT"], endpoint="admin_user_update")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN)
    def admin_user_update(user_id: int):
        body = get_json_body()
        admin = current_user()
        user = container.user_service.update_user(
            current_role=admin.role,
            user_id=user_id,
            full_name=body.get("fullName"),
            email=body.get("email"),
            phone=body.get("phone"),
            role=_parse_enum(Role, body.get("role"), "role"),
            status=_parse_enum(UserStatus, body.get("status"), "status"),
        )
        security_logger.log_admin_action(admin.user_id, "update_user", f"user_id={user_id}")
        return json_success({"user": user.to_public_dict()}, message="User updated successfully")

    @app.route("/api/admin/users/<int:user_id>", methods=["DELETE"], endpoint="admin_user_delete")
    @rate_limited(limiter, "api")
    @api_login_required
    @roles_required(Role.ADMIN)
    def admin_user_delete(user_id: int):
        admin = current_user()
        container.user_service.delete_user(current_role=admin.role, admin_id=admin.user_id, user_id=user_id)
        security_logger.log_admin_action(admin.user_id, "delete_user", f"user_id={user_id}")
        return json_success(message="User deleted successfully")
