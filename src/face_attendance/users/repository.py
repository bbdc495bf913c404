from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import Role, TokenPurpose, UserStatus
from .model import User, UserToken


class UserRepository(Protocol):
    """Repository interface for User.

    Services depend on this interface, never on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_student_code(self, student_code: str) -> Optional[User]:
        raise NotImplementedError

    def create_user(
        self,
        *,
        email: str,
        full_name: str,
        password_hash: str,
        role: Role,
        status: UserStatus,
        student_code: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> int:
        """Raises DuplicateKeyError when email or student code is taken."""

        raise NotImplementedError

    def list_users(
        self,
        *,
        status: Optional[UserStatus],
        limit: int,
        offset: int,
        role: Optional[Role] = None,
        search: Optional[str] = None,
    ) -> tuple[Sequence[User], int]:
        """Return one page of users and the total count for the filter.

        ``search`` matches name, email or student code (substring, case-insensitive).
        """

        raise NotImplementedError

    def update_user(
        self,
        user_id: int,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        role: Optional[Role] = None,
        status: Optional[UserStatus] = None,
    ) -> bool:
        """Update the given fields. Raises DuplicateKeyError when the email is taken."""

        raise NotImplementedError

    def delete_user(self, user_id: int) -> bool:
        """Delete the user and everything owned by it.

        Raises ReferencedRowError while the user is still a class lecturer.
        """

        raise NotImplementedError

    def mark_email_verified(self, user_id: int) -> bool:
        raise NotImplementedError

    def set_face_enrolled(self, user_id: int, enrolled: bool) -> bool:
        raise NotImplementedError

    def update_password(self, user_id: int, password_hash: str) -> bool:
        raise NotImplementedError

    def set_registration_decision(
        self,
        *,
        user_id: int,
        status: UserStatus,
        decided_by: int,
        decided_at: datetime,
        reason: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError


class TokenRepository(Protocol):
    def create(self, *, user_id: int, purpose: TokenPurpose, token: str, expires_at: datetime) -> int:
        raise NotImplementedError

    def get(self, token: str, purpose: TokenPurpose) -> Optional[UserToken]:
        raise NotImplementedError

    def mark_used(self, token_id: int, used_at: datetime) -> bool:
        raise NotImplementedError

    def delete(self, token_id: int) -> bool:
        raise NotImplementedError

    def delete_for_user(self, user_id: int, purpose: TokenPurpose) -> int:
        raise NotImplementedError
