import os


def get_settings_module() -> str:
    # APP_ENV chooses the settings module, development by default
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "face_attendance.settings.production"

    if env in {"test", "testing"}:
        return "face_attendance.settings.testing"

    return "face_attendance.settings.development"
