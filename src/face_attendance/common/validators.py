from __future__ import annotations

import math
import re
from datetime import datetime, time
from typing import Any, Optional, Sequence

from ..core.exceptions import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_min_length(value: str, field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters")
    return value


def require_email(value: str) -> str:
    email = require_non_empty(value, "Email").lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email


def require_strong_password(value: str) -> str:
    """At least 8 characters with an upper case letter, a lower case letter and a digit."""
    require_min_length(value, "Password", 8)
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValidationError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


def require_unit_interval(value: Any, field_name: str) -> float:
    number = require_number(value, field_name)
    if not 0.0 <= number <= 1.0:
        raise ValidationError(f"{field_name} must be between 0 and 1")
    return number


def require_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number")
    return number


def optional_number(value: Any, field_name: str, *, lo: float, hi: float) -> Optional[float]:
    if value is None or value == "":
        return None
    number = require_number(value, field_name)
    if not lo <= number <= hi:
        raise ValidationError(f"{field_name} must be between {lo:g} and {hi:g}")
    return number


def require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} is invalid")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is invalid")
    if number <= 0:
        raise ValidationError(f"{field_name} is invalid")
    return number


def require_descriptor(value: Any, *, length: Optional[int] = None) -> tuple[float, ...]:
    """Parse a face descriptor (a JSON list of numbers)."""

    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)) or not value:
        raise ValidationError("Invalid face descriptors")
    descriptor = tuple(require_number(v, "Face descriptor value") for v in value)
    if length is not None and len(descriptor) != length:
        raise ValidationError(f"Face descriptors must contain exactly {length} values")
    return descriptor


def parse_hhmm(value: str, field_name: str) -> time:
    v = (value or "").strip()
    try:
        return datetime.strptime(v, "%H:%M").time()
    except ValueError:
        raise ValidationError(f"{field_name} must use HH:MM format")
