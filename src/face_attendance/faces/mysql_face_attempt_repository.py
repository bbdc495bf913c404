from __future__ import annotations

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor
from .model import FaceAttempt
from .repository import FaceAttemptRepository


class MySQLFaceAttemptRepository(FaceAttemptRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def record(self, attempt: FaceAttempt) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO face_attempt_logs(user_id, class_id, confidence, success, reason, attendance_id)
                VALUES(%s, %s, %s, %s, %s, %s)
                """,
                (
                    int(attempt.user_id),
                    int(attempt.class_id),
                    float(attempt.confidence),
                    int(bool(attempt.success)),
                    attempt.reason,
                    attempt.attendance_id,
                ),
            )
            return int(cur.lastrowid)
