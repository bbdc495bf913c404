from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    def __init__(self, message: str, errors: Optional[dict[str, list[str]]] = None):
        super().__init__(message)
        self.errors = errors


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class ConflictError(DomainError):
    """Raised when an entity with the same unique identity already exists."""


class CheckInRejected(DomainError):
    """A check-in attempt was refused.

    Every subclass is a legitimate "no" answer to the user, never a system
    malfunction. ``kind`` is machine readable, ``reason`` is shown to people.
    """

    kind = "CHECK_IN_REJECTED"
    default_reason = "check-in rejected"

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class NotEnrolled(CheckInRejected):
    kind = "NOT_ENROLLED"
    default_reason = "you are not enrolled in this class"


class FaceProfileMissing(CheckInRejected):
    kind = "FACE_PROFILE_MISSING"
    default_reason = "face profile not found, complete face enrollment first"


class FaceMismatch(CheckInRejected):
    kind = "FACE_MISMATCH"
    default_reason = "face recognition failed, please try again"

    def __init__(self, confidence: float, threshold: float, reason: Optional[str] = None):
        super().__init__(reason)
        self.confidence = confidence
        self.threshold = threshold


class DuplicateCheckIn(CheckInRejected):
    kind = "DUPLICATE_CHECK_IN"
    default_reason = "you have already checked in for this class today"


class LocationRejected(CheckInRejected):
    kind = "LOCATION_REJECTED"
    default_reason = "location could not be verified"


class OutsideCheckInWindow(CheckInRejected):
    kind = "OUTSIDE_CHECK_IN_WINDOW"
    default_reason = "check-in is not available at this time"


class DescriptorLengthMismatch(CheckInRejected):
    kind = "DESCRIPTOR_LENGTH_MISMATCH"
    default_reason = "face descriptor does not match the enrolled profile"


class DuplicateKeyError(Exception):
    """Raised by repositories when the store rejects a duplicate unique key."""


class PersistenceError(Exception):
    """Systemic storage failure. The caller may retry."""


class ReferencedRowError(Exception):
    """Raised by repositories when a delete is blocked by a foreign key."""
