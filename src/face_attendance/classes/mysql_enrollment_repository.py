from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import EnrollmentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Enrollment
from .repository import EnrollmentRepository

_COLUMNS = "enrollment_id, user_id, class_id, status, enrolled_at"


def _row_to_enrollment(r: dict) -> Enrollment:
    return Enrollment(
        enrollment_id=int(r["enrollment_id"]),
        user_id=int(r["user_id"]),
        class_id=int(r["class_id"]),
        status=EnrollmentStatus(r["status"]),
        enrolled_at=r.get("enrolled_at"),
    )


class MySQLEnrollmentRepository(EnrollmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, user_id: int, class_id: int) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM enrollments WHERE user_id=%s AND class_id=%s",
                (int(user_id), int(class_id)),
            )
            r = fetchone(cur)
            return _row_to_enrollment(r) if r else None

    def get_active(self, user_id: int, class_id: int) -> Optional[Enrollment]:
        enrollment = self.get(user_id, class_id)
        return enrollment if enrollment and enrollment.is_active else None

    def upsert(self, *, user_id: int, class_id: int, status: EnrollmentStatus) -> Enrollment:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO enrollments(user_id, class_id, status)
                VALUES(%s, %s, %s)
                ON DUPLICATE KEY UPDATE status=VALUES(status)
                """,
                (int(user_id), int(class_id), status.value),
            )
            cur.execute(
                f"SELECT {_COLUMNS} FROM enrollments WHERE user_id=%s AND class_id=%s",
                (int(user_id), int(class_id)),
            )
            return _row_to_enrollment(fetchone(cur))

    def count_active(self, class_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS total FROM enrollments WHERE class_id=%s AND status='ACTIVE'",
                (int(class_id),),
            )
            return int((fetchone(cur) or {}).get("total", 0))

    def list_for_class(self, class_id: int) -> Sequence[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM enrollments WHERE class_id=%s ORDER BY enrolled_at",
                (int(class_id),),
            )
            return [_row_to_enrollment(r) for r in fetchall(cur)]
