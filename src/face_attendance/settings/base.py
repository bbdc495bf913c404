"""Settings shared by every environment.

Values come from environment variables (``.env`` is loaded by ``create_app``).
Environment modules import ``*`` from here and override what differs.
"""

import os

from ..core.constants import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_EARLY_CHECKIN_MINUTES,
    DEFAULT_FACE_MAX_DISTANCE,
    DEFAULT_RATE_LIMITS,
    DEFAULT_ROOM_RADIUS_M,
    FACE_DESCRIPTOR_LENGTH as _FACE_DESCRIPTOR_LENGTH,
)


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _rate_limits() -> dict:
    # RATE_LIMIT_AUTH=10/60 overrides the "auth" rule, and so on
    limits = dict(DEFAULT_RATE_LIMITS)
    for name in limits:
        raw = os.getenv(f"RATE_LIMIT_{name.upper()}")
        if raw:
            count, _, window = raw.partition("/")
            limits[name] = (int(count), int(window or 60))
    return limits


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "face_attendance"),
}

DEBUG = False
TESTING = False

# Apply database/schema.sql on startup (idempotent: CREATE TABLE IF NOT EXISTS)
AUTO_INIT_DB = _flag("AUTO_INIT_DB")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR") or None

# Face matching
FACE_MAX_DISTANCE = float(os.getenv("FACE_MAX_DISTANCE", str(DEFAULT_FACE_MAX_DISTANCE)))
FACE_DESCRIPTOR_LENGTH = int(os.getenv("FACE_DESCRIPTOR_LENGTH", str(_FACE_DESCRIPTOR_LENGTH)))
DEFAULT_CONFIDENCE_THRESHOLD = float(
    os.getenv("DEFAULT_CONFIDENCE_THRESHOLD", str(DEFAULT_CONFIDENCE_THRESHOLD))
)

# Check-in window and location
EARLY_CHECKIN_MINUTES = int(os.getenv("EARLY_CHECKIN_MINUTES", str(DEFAULT_EARLY_CHECKIN_MINUTES)))
DEFAULT_ROOM_RADIUS_M = float(os.getenv("DEFAULT_ROOM_RADIUS_M", str(DEFAULT_ROOM_RADIUS_M)))
REQUIRE_LOCATION_EVIDENCE = _flag("REQUIRE_LOCATION_EVIDENCE")

RATE_LIMITS = _rate_limits()

# Reverse proxies in front of the app; X-Forwarded-For is ignored while this is 0
TRUSTED_PROXY_HOPS = int(os.getenv("TRUSTED_PROXY_HOPS", "0"))

APP_NAME = os.getenv("APP_NAME", "Face Attendance")
APP_URL = os.getenv("APP_URL", "http://localhost:5000").rstrip("/")

# Mail. Leave SMTP_HOST empty to only log outgoing mail.
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_SSL = _flag("SMTP_USE_SSL", "1")
MAIL_FROM = os.getenv("MAIL_FROM", "noreply@localhost")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", APP_NAME)

# Bootstrap admin created by scripts/init_db.py
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
