from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role, TokenPurpose, UserStatus


@dataclass(frozen=True)
class User:
    """Domain entity: an account (admin, lecturer or student).

    Plain data object, no DB access.
    """

    user_id: int
    email: str
    full_name: str
    password_hash: str
    role: Role
    status: UserStatus
    student_code: Optional[str] = None
    phone: Optional[str] = None
    email_verified: bool = False
    face_enrolled: bool = False
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_public_dict(self) -> dict:
        return {
            "id": self.user_id,
            "email": self.email,
            "fullName": self.full_name,
            "studentCode": self.student_code,
            "phone": self.phone,
            "role": self.role.value,
            "status": self.status.value,
            "emailVerified": self.email_verified,
            "faceEnrolled": self.face_enrolled,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class UserToken:
    token_id: int
    user_id: int
    purpose: TokenPurpose
    token: str
    expires_at: datetime
    used_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class SessionUser:
    """What we store into the Flask session after login."""

    user_id: int
    email: str
    full_name: str
    role: Role

    def to_session(self) -> dict:
        return {"user_id": self.user_id, "email": self.email, "name": self.full_name, "role": self.role.value}

    @classmethod
    def from_session(cls, data) -> Optional["SessionUser"]:
        if not data or "user_id" not in data:
            return None
        return cls(
            user_id=int(data["user_id"]),
            email=str(data.get("email", "")),
            full_name=str(data.get("name", "")),
            role=Role(data["role"]),
        )
