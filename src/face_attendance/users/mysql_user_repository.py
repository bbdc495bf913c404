from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import Role, UserStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_COLUMNS = """
    user_id, email, full_name, student_code, phone, password_hash, role, status,
    email_verified, face_enrolled, approved_by, approved_at, rejection_reason, created_at
"""


def _row_to_user(r: dict) -> User:
    return User(
        user_id=int(r["user_id"]),
        email=r["email"],
        full_name=r["full_name"],
        student_code=r.get("student_code"),
        phone=r.get("phone"),
        password_hash=r["password_hash"],
        role=Role(r["role"]),
        status=UserStatus(r["status"]),
        email_verified=bool(r.get("email_verified")),
        face_enrolled=bool(r.get("face_enrolled")),
        approved_by=int(r["approved_by"]) if r.get("approved_by") is not None else None,
        approved_at=r.get("approved_at"),
        rejection_reason=r.get("rejection_reason"),
        created_at=r.get("created_at"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_one(self, where: str, value) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE {where}=%s", (value,))
            r = fetchone(cur)
            return _row_to_user(r) if r else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._get_one("user_id", int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return self._get_one("email", email)

    def get_by_student_code(self, student_code: str) -> Optional[User]:
        return self._get_one("student_code", student_code)

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(email, full_name, student_code, phone, password_hash, role, status)
                VALUES(%s, %s, %s, %s, %s, %s, %s)
                """,
                (email, full_name, student_code, phone, password_hash, role.value, status.value),
            )
            return int(cur.lastrowid)

    def list_users(
        self,
        *,
        status: Optional[UserStatus],
        limit: int,
        offset: int,
        role: Optional[Role] = None,
        search: Optional[str] = None,
    ) -> tuple[Sequence[User], int]:
        clauses: list[str] = []
        values: list = []
        if status:
            clauses.append("status=%s")
            values.append(status.value)
        if role:
            clauses.append("role=%s")
            values.append(role.value)
        if search:
            # utf8mb4_unicode_ci makes LIKE case-insensitive
            clauses.append("(full_name LIKE %s OR email LIKE %s OR student_code LIKE %s)")
            values.extend([f"%{search}%"] * 3)
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        params = tuple(values)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM users {where}", params)
            total = int((fetchone(cur) or {}).get("total", 0))
            cur.execute(
                f"SELECT {_COLUMNS} FROM users {where} ORDER BY created_at DESC, user_id DESC LIMIT %s OFFSET %s",
                params + (int(limit), int(offset)),
            )
            return [_row_to_user(r) for r in fetchall(cur)], total

    def _update(self, sql: str, params: tuple) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return cur.rowcount > 0

    def mark_email_verified(self, user_id: int) -> bool:
        return self._update("UPDATE users SET email_verified=1 WHERE user_id=%s", (int(user_id),))

    def set_face_enrolled(self, user_id: int, enrolled: bool) -> bool:
        return self._update("UPDATE users SET face_enrolled=%s WHERE user_id=%s", (int(bool(enrolled)), int(user_id)))

    def update_password(self, user_id: int, password_hash: str) -> bool:
        return self._update("UPDATE users SET password_hash=%s WHERE user_id=%s", (password_hash, int(user_id)))

    def set_registration_decision(
        self,
        *,
        user_id: int,
        status: UserStatus,
        decided_by: int,
        decided_at: datetime,
        reason: Optional[str] = None,
    ) -> bool:
        return self._update(
            """
            UPDATE users
            SET status=%s, approved_by=%s, approved_at=%s, rejection_reason=%s
            WHERE user_id=%s AND status='PENDING'
            """,
            (status.value, int(decided_by), decided_at, reason, int(user_id)),
        )

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
        fields = {
            "full_name": full_name,
            "email": email,
            "phone": phone,
            "role": role.value if role else None,
            "status": status.value if status else None,
        }
        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            return False
        assignments = ", ".join(f"{column}=%s" for column in changes)
        return self._update(
            f"UPDATE users SET {assignments} WHERE user_id=%s", tuple(changes.values()) + (int(user_id),)
        )

    def delete_user(self, user_id: int) -> bool:
        # tokens, face data, enrollments, attendance and attempt logs cascade
        return self._update("DELETE FROM users WHERE user_id=%s", (int(user_id),))
