from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Optional

from flask import Flask, current_app, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CheckInRejected,
    ConflictError,
    DuplicateCheckIn,
    FaceMismatch,
    NotEnrolled,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..logging_config import security_logger
from ..users.model import SessionUser
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

_SESSION_USER_LOADER = "face_attendance.session_user_loader"


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: int):
        super().__init__("Too many requests, please try again later")
        self.retry_after = retry_after


def json_success(data: Any = None, *, message: Optional[str] = None, meta: Optional[dict] = None, status: int = 200):
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def json_error(message: str, status: int, *, kind: Optional[str] = None, errors: Optional[dict] = None, data=None):
    body: dict = {"success": False, "error": message}
    if kind:
        body["kind"] = kind
    if errors:
        body["errors"] = errors
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def get_json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def get_client_ip() -> str:
    # forwarding headers are only honoured through ProxyFix (TRUSTED_PROXY_HOPS)
    return request.remote_addr or "unknown"


def current_user() -> SessionUser:
    return g.current_user


def init_session_auth(app: Flask, loader: Callable[[int], SessionUser]) -> None:
    """Register how ``api_login_required`` turns the cookie's user id into a live user.

    ``loader`` raises ``AuthenticationError`` for a missing or inactive account.
    """

    app.extensions[_SESSION_USER_LOADER] = loader


def api_login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        cookie_user = SessionUser.from_session(session)
        if cookie_user is None:
            raise AuthenticationError("Authentication required")
        try:
            g.current_user = current_app.extensions[_SESSION_USER_LOADER](cookie_user.user_id)
        except AuthenticationError:
            session.clear()
            raise
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    """Use under ``api_login_required``."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user.role not in roles:
                security_logger.log_unauthorized_access(request.endpoint, get_client_ip(), user.user_id)
                raise AuthorizationError("You do not have permission for this action")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def rate_limited(limiter: RateLimiter, rule_name: str):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            result = limiter.check(rule_name, get_client_ip())
            if not result.allowed:
                logger.warning("rate limit %s exceeded ip=%s", rule_name, get_client_ip())
                raise RateLimitExceeded(result.retry_after(limiter.now()))
            return view(*args, **kwargs)

        return wrapper

    return decorator


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        return json_error(str(e), 400, kind="VALIDATION_ERROR", errors=e.errors)

    @app.errorhandler(AuthenticationError)
    def _authentication(e: AuthenticationError):
        return json_error(str(e), 401, kind="UNAUTHENTICATED")

    @app.errorhandler(AuthorizationError)
    def _authorization(e: AuthorizationError):
        return json_error(str(e), 403, kind="FORBIDDEN")

    @app.errorhandler(NotFoundError)
    def _not_found(e: NotFoundError):
        return json_error(str(e), 404, kind="NOT_FOUND")

    @app.errorhandler(ConflictError)
    def _conflict(e: ConflictError):
        return json_error(str(e), 409, kind="CONFLICT")

    @app.errorhandler(CheckInRejected)
    def _check_in_rejected(e: CheckInRejected):
        if isinstance(e, NotEnrolled):
            status = 403
        elif isinstance(e, DuplicateCheckIn):
            status = 409
        else:
            status = 400
        data = {"confidence": e.confidence, "threshold": e.threshold} if isinstance(e, FaceMismatch) else None
        return json_error(e.reason, status, kind=e.kind, data=data)

    @app.errorhandler(RateLimitExceeded)
    def _rate_limited(e: RateLimitExceeded):
        response, status = json_error(str(e), 429, kind="RATE_LIMITED")
        response.headers["Retry-After"] = str(e.retry_after)
        return response, status

    @app.errorhandler(PersistenceError)
    def _persistence(e: PersistenceError):
        return json_error(str(e), 503, kind="PERSISTENCE_ERROR")

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return json_error(e.description or e.name, e.code or 500, kind=e.name.upper().replace(" ", "_"))

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return json_error("Internal server error", 500, kind="INTERNAL_ERROR")
