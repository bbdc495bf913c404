from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchone, load_json
from .model import FaceProfile
from .repository import FaceProfileRepository

_COLUMNS = "profile_id, user_id, descriptor, quality_score, confidence_threshold, version, updated_at"


def _row_to_profile(r: dict) -> FaceProfile:
    return FaceProfile(
        profile_id=int(r["profile_id"]),
        user_id=int(r["user_id"]),
        descriptor=tuple(float(v) for v in load_json(r["descriptor"], [])),
        quality_score=float(r["quality_score"]),
        confidence_threshold=float(r["confidence_threshold"]),
        version=int(r["version"]),
        updated_at=r.get("updated_at"),
    )


class MySQLFaceProfileRepository(FaceProfileRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_user(self, user_id: int) -> Optional[FaceProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM face_profiles WHERE user_id=%s", (user_id,))
            r = fetchone(cur)
            return _row_to_profile(r) if r else None

    def upsert(
        self,
        *,
        user_id: int,
        descriptor: Sequence[float],
        quality_score: float,
        confidence_threshold: float,
    ) -> FaceProfile:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO face_profiles(user_id, descriptor, quality_score, confidence_threshold, version)
                VALUES(%s, %s, %s, %s, 1)
                ON DUPLICATE KEY UPDATE
                    descriptor=VALUES(descriptor),
                    quality_score=VALUES(quality_score),
                    confidence_threshold=VALUES(confidence_threshold),
                    version=version + 1
                """,
                (user_id, dump_json(list(descriptor)), float(quality_score), float(confidence_threshold)),
            )
            cur.execute(f"SELECT {_COLUMNS} FROM face_profiles WHERE user_id=%s", (user_id,))
            return _row_to_profile(fetchone(cur))

    def delete_by_user(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM face_profiles WHERE user_id=%s", (user_id,))
            return cur.rowcount > 0
