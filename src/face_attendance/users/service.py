from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.datetime_utils import now_local
from ..common.pagination import Page, PageRequest
from ..common.validators import (
    require_email,
    require_min_length,
    require_non_empty,
    require_strong_password,
)
from ..core.constants import EMAIL_VERIFICATION_TTL_HOURS, PASSWORD_RESET_TTL_HOURS
from ..core.enums import Role, TokenPurpose, UserStatus
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    ReferencedRowError,
    ValidationError,
)
from ..notifications.service import NotificationService
from .model import SessionUser, User
from .repository import TokenRepository, UserRepository

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password"

_BLOCKED_STATUS_MESSAGES = {
    UserStatus.PENDING: "Your account is pending admin approval",
    UserStatus.SUSPENDED: "Your account has been suspended",
    UserStatus.REJECTED: "Your registration was rejected",
}


def _new_token() -> str:
    return secrets.token_hex(32)


class AuthService:
    """Use case: authenticate user (login)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, email: str, password: str) -> SessionUser:
        try:
            email = require_email(email)
        except ValidationError:
            raise AuthenticationError(_INVALID_CREDENTIALS)

        user = self._users.get_by_email(email)
        if not user or not password:
            raise AuthenticationError(_INVALID_CREDENTIALS)

        try:
            ok = check_password_hash(user.password_hash, password)
        except ValueError:
            # placeholder or corrupted hashes
            ok = False
        if not ok:
            raise AuthenticationError(_INVALID_CREDENTIALS)

        blocked = _BLOCKED_STATUS_MESSAGES.get(user.status)
        if blocked:
            raise AuthorizationError(blocked)

        return SessionUser(user_id=user.user_id, email=user.email, full_name=user.full_name, role=user.role)

    def load_session_user(self, user_id: int) -> SessionUser:
        """Resolve a signed-cookie user id to a live, ACTIVE account.

        The role comes from the stored row, so a role change or suspension
        takes effect on the next request.
        """

        user = self._users.get_by_id(user_id)
        if not user or user.status != UserStatus.ACTIVE:
            logger.info("session rejected for user_id=%s", user_id)
            raise AuthenticationError("Session is no longer valid")
        return SessionUser(user_id=user.user_id, email=user.email, full_name=user.full_name, role=user.role)

    def get_current_user(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if not user:
            raise AuthenticationError("Session is no longer valid")
        return user


class AccountService:
    """Self-service account flows: registration, email verification, password reset."""

    def __init__(self, users: UserRepository, tokens: TokenRepository, notifications: NotificationService):
        self._users = users
        self._tokens = tokens
        self._notifications = notifications

    def register(
        self,
        *,
        email: str,
        full_name: str,
        student_code: str,
        phone: str,
        password: str,
        role: Role = Role.STUDENT,
        now: Optional[datetime] = None,
    ) -> User:
        now = now or now_local()

        errors: dict[str, list[str]] = {}

        def check(field: str, fn, *args):
            try:
                return fn(*args)
            except ValidationError as e:
                errors.setdefault(field, []).append(str(e))
                return None

        email = check("email", require_email, email)
        full_name = check("fullName", require_non_empty, full_name, "Full name")
        if full_name is not None:
            check("fullName", require_min_length, full_name, "Full name", 2)
        student_code = check("studentCode", require_non_empty, student_code, "Student code")
        if student_code is not None:
            check("studentCode", require_min_length, student_code, "Student code", 3)
        phone = check("phone", require_non_empty, phone, "Phone number")
        if phone is not None:
            check("phone", require_min_length, phone, "Phone number", 10)
        check("password", require_strong_password, password)
        if role not in (Role.STUDENT, Role.LECTURER):
            errors.setdefault("role", []).append("Role must be STUDENT or LECTURER")

        if errors:
            raise ValidationError("Validation failed", errors=errors)

        if self._users.get_by_email(email):
            raise ConflictError("User with this email already exists")
        if self._users.get_by_student_code(student_code):
            raise ConflictError("User with this student code already exists")

        try:
            user_id = self._users.create_user(
                email=email,
                full_name=full_name,
                student_code=student_code,
                phone=phone,
                password_hash=generate_password_hash(password),
                role=role,
                status=UserStatus.PENDING,
            )
        except DuplicateKeyError:
            raise ConflictError("User with this email or student code already exists")

        token = _new_token()
        self._tokens.create(
            user_id=user_id,
            purpose=TokenPurpose.EMAIL_VERIFICATION,
            token=token,
            expires_at=now + timedelta(hours=EMAIL_VERIFICATION_TTL_HOURS),
        )
        self._notifications.send_email_verification(email=email, full_name=full_name, token=token)
        logger.info("registered user_id=%s role=%s", user_id, role.value)

        return self._users.get_by_id(user_id)

    def verify_email(self, token: str, *, now: Optional[datetime] = None) -> User:
        now = now or now_local()
        record = self._tokens.get(require_non_empty(token, "Verification token"), TokenPurpose.EMAIL_VERIFICATION)
        if not record or record.used_at is not None:
            raise ValidationError("Invalid verification token")
        if record.is_expired(now):
            self._tokens.delete(record.token_id)
            raise ValidationError("Verification token has expired")

        self._users.mark_email_verified(record.user_id)
        self._tokens.mark_used(record.token_id, now)
        user = self._users.get_by_id(record.user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def request_password_reset(self, email: str, *, now: Optional[datetime] = None) -> None:
        """Always succeeds from the caller's point of view, so emails cannot be probed."""

        now = now or now_local()
        email = require_email(email)
        user = self._users.get_by_email(email)
        if not user:
            logger.info("password reset requested for unknown email")
            return

        self._tokens.delete_for_user(user.user_id, TokenPurpose.PASSWORD_RESET)
        token = _new_token()
        self._tokens.create(
            user_id=user.user_id,
            purpose=TokenPurpose.PASSWORD_RESET,
            token=token,
            expires_at=now + timedelta(hours=PASSWORD_RESET_TTL_HOURS),
        )
        self._notifications.send_password_reset(email=user.email, full_name=user.full_name, token=token)

    def reset_password(self, token: str, password: str, *, now: Optional[datetime] = None) -> None:
        now = now or now_local()
        record = self._tokens.get(require_non_empty(token, "Reset token"), TokenPurpose.PASSWORD_RESET)
        if not record:
            raise ValidationError("Invalid reset token")
        if record.used_at is not None:
            raise ValidationError("Reset token has already been used")
        if record.is_expired(now):
            raise ValidationError("Reset token has expired")

        require_strong_password(password)
        if not self._tokens.mark_used(record.token_id, now):
            raise ValidationError("Reset token has already been used")
        self._users.update_password(record.user_id, generate_password_hash(password))
        logger.info("password reset for user_id=%s", record.user_id)


class UserService:
    """Use case: manage users (admin)."""

    def __init__(self, users: UserRepository, notifications: NotificationService):
        self._users = users
        self._notifications = notifications

    def list_users(
        self,
        *,
        current_role: Role,
        status: Optional[UserStatus] = None,
        role: Optional[Role] = None,
        search: Optional[str] = None,
        page: Optional[PageRequest] = None,
    ) -> Page[User]:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Admin access required")
        page = page or PageRequest()
        items, total = self._users.list_users(
            status=status,
            role=role,
            search=(search or "").strip() or None,
            limit=page.limit,
            offset=page.offset,
        )
        return Page(items=list(items), page=page.page, limit=page.limit, total=total)

    def decide_registration(
        self,
        *,
        current_role: Role,
        admin_id: int,
        user_id: int,
        approve: bool,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> User:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Admin access required")
        now = now or now_local()

        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.status != UserStatus.PENDING:
            raise ValidationError("User is not pending approval")
        if approve:
            if not user.email_verified:
                raise ValidationError("User has not completed email verification")
            if not user.face_enrolled:
                raise ValidationError("User has not completed face enrollment")

        reason = (reason or "").strip() or None
        status = UserStatus.ACTIVE if approve else UserStatus.REJECTED
        updated = self._users.set_registration_decision(
            user_id=user.user_id,
            status=status,
            decided_by=admin_id,
            decided_at=now,
            reason=None if approve else reason,
        )
        if not updated:
            raise ConflictError("Registration was already decided")

        self._notifications.send_registration_decision(
            email=user.email, full_name=user.full_name, approved=approve, reason=reason
        )
        if approve:
            self._notifications.send_welcome(email=user.email, full_name=user.full_name)

        return self._users.get_by_id(user.user_id)

    def update_user(
        self,
        *,
        current_role: Role,
        user_id: int,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        role: Optional[Role] = None,
        status: Optional[UserStatus] = None,
    ) -> User:
        """Admin edit of profile fields, role and status. ``None`` leaves a field unchanged."""

        if current_role != Role.ADMIN:
            raise AuthorizationError("Admin access required")

        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        changes: dict = {}
        if full_name is not None:
            changes["full_name"] = require_min_length(require_non_empty(full_name, "Full name"), "Full name", 2)
        if email is not None:
            changes["email"] = require_email(email)
        if phone is not None:
            changes["phone"] = require_min_length(require_non_empty(phone, "Phone number"), "Phone number", 10)
        if role is not None:
            changes["role"] = role
        if status is not None:
            changes["status"] = status
        if not changes:
            raise ValidationError("Nothing to update")

        if changes.get("email", user.email) != user.email and self._users.get_by_email(changes["email"]):
            raise ConflictError("Email already in use")

        try:
            self._users.update_user(user_id, **changes)
        except DuplicateKeyError:
            raise ConflictError("Email already in use")

        logger.info("user updated user_id=%s fields=%s", user_id, ",".join(sorted(changes)))
        return self._users.get_by_id(user_id)

    def delete_user(self, *, current_role: Role, admin_id: int, user_id: int) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Admin access required")
        if user_id == admin_id:
            raise ValidationError("Cannot delete your own account")
        if not self._users.get_by_id(user_id):
            raise NotFoundError("User not found")

        try:
            self._users.delete_user(user_id)
        except ReferencedRowError:
            raise ConflictError("User still teaches classes; reassign them first")
        logger.info("user deleted user_id=%s by admin_id=%s", user_id, admin_id)
