"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
Deployments override most of them through settings.
"""

FACE_DESCRIPTOR_LENGTH = 128
DEFAULT_FACE_MAX_DISTANCE = 1.0
DEFAULT_CONFIDENCE_THRESHOLD = 0.8

DEFAULT_EARLY_CHECKIN_MINUTES = 15
DEFAULT_LATE_THRESHOLD_MINUTES = 10
DEFAULT_ROOM_RADIUS_M = 50.0

EMAIL_VERIFICATION_TTL_HOURS = 24
PASSWORD_RESET_TTL_HOURS = 1
SESSION_LIFETIME_DAYS = 7

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# rule name -> (limit, window seconds)
DEFAULT_RATE_LIMITS = {
    "api": (100, 60),
    "auth": (10, 60),
    "face": (20, 300),
    "email": (5, 3600),
}
