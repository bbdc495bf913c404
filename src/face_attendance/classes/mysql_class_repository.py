from __future__ import annotations

from datetime import time
from typing import Iterable, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    dump_json,
    fetchall,
    fetchone,
    load_json,
    normalize_mysql_time,
    optional_float,
)
from .model import ClassSession, ClassWithRoom, Room
from .repository import ClassRepository

_CLASS_COLUMNS = """
    c.class_id, c.code, c.name, c.description, c.lecturer_id, c.room_id, c.day_of_week,
    c.start_time, c.end_time, c.late_threshold_minutes, c.capacity, c.is_active,
    u.full_name AS lecturer_name,
    (SELECT COUNT(*) FROM enrollments e
     WHERE e.class_id = c.class_id AND e.status = 'ACTIVE') AS enrolled_count
"""

_ROOM_COLUMNS = "room_id, name, building, wifi_ssids, gps_lat, gps_lng, radius_m"


def _row_to_class(r: dict) -> ClassSession:
    return ClassSession(
        class_id=int(r["class_id"]),
        code=r["code"],
        name=r["name"],
        description=r.get("description"),
        lecturer_id=int(r["lecturer_id"]),
        room_id=int(r["room_id"]),
        day_of_week=int(r["day_of_week"]) if r.get("day_of_week") is not None else None,
        start_time=normalize_mysql_time(r["start_time"]),
        end_time=normalize_mysql_time(r["end_time"]),
        late_threshold_minutes=int(r["late_threshold_minutes"]),
        capacity=int(r["capacity"]) if r.get("capacity") is not None else None,
        is_active=bool(r.get("is_active", 1)),
        lecturer_name=r.get("lecturer_name"),
        enrolled_count=int(r["enrolled_count"]) if r.get("enrolled_count") is not None else None,
    )


def _row_to_room(r: dict) -> Room:
    return Room(
        room_id=int(r["room_id"]),
        name=r["name"],
        building=r.get("building"),
        wifi_ssids=frozenset(load_json(r.get("wifi_ssids"), []) or []),
        gps_lat=optional_float(r.get("gps_lat")),
        gps_lng=optional_float(r.get("gps_lng")),
        radius_m=optional_float(r.get("radius_m")),
    )


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_class(self, where: str, value) -> Optional[ClassSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_CLASS_COLUMNS}
                FROM classes c
                JOIN users u ON u.user_id = c.lecturer_id
                WHERE {where}=%s
                """,
                (value,),
            )
            r = fetchone(cur)
            return _row_to_class(r) if r else None

    def get_by_id(self, class_id: int) -> Optional[ClassSession]:
        return self._get_class("c.class_id", int(class_id))

    def get_by_code(self, code: str) -> Optional[ClassSession]:
        return self._get_class("c.code", code)

    def get_with_room(self, class_id: int) -> Optional[ClassWithRoom]:
        session = self.get_by_id(class_id)
        if not session:
            return None
        room = self.get_room(session.room_id)
        if not room:
            return None
        return ClassWithRoom(session=session, room=room)

    def list_classes(
        self,
        *,
        lecturer_id: Optional[int] = None,
        student_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int,
        offset: int,
    ) -> tuple[Sequence[ClassSession], int]:
        clauses = ["c.is_active = 1"]
        params: list = []
        if lecturer_id is not None:
            clauses.append("c.lecturer_id = %s")
            params.append(int(lecturer_id))
        if student_id is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM enrollments se WHERE se.class_id = c.class_id "
                "AND se.user_id = %s AND se.status = 'ACTIVE')"
            )
            params.append(int(student_id))
        if search:
            clauses.append("(c.name LIKE %s OR c.code LIKE %s)")
            like = f"%{search}%"
            params.extend([like, like])
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM classes c WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("total", 0))
            cur.execute(
                f"""
                SELECT {_CLASS_COLUMNS}
                FROM classes c
                JOIN users u ON u.user_id = c.lecturer_id
                WHERE {where}
                ORDER BY c.created_at DESC, c.class_id DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (int(limit), int(offset)),
            )
            return [_row_to_class(r) for r in fetchall(cur)], total

    def create_class(
        self,
        *,
        code: str,
        name: str,
        lecturer_id: int,
        room_id: int,
        day_of_week: Optional[int],
        start_time: time,
        end_time: time,
        late_threshold_minutes: int,
        capacity: Optional[int] = None,
        description: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO classes(code, name, description, lecturer_id, room_id, day_of_week,
                                    start_time, end_time, late_threshold_minutes, capacity)
                VALUES(%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    code,
                    name,
                    description,
                    int(lecturer_id),
                    int(room_id),
                    day_of_week,
                    start_time,
                    end_time,
                    int(late_threshold_minutes),
                    capacity,
                ),
            )
            return int(cur.lastrowid)

    def get_room(self, room_id: int) -> Optional[Room]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_ROOM_COLUMNS} FROM rooms WHERE room_id=%s", (int(room_id),))
            r = fetchone(cur)
            return _row_to_room(r) if r else None

    def list_rooms(self) -> Sequence[Room]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_ROOM_COLUMNS} FROM rooms ORDER BY name")
            return [_row_to_room(r) for r in fetchall(cur)]

    def create_room(
        self,
        *,
        name: str,
        wifi_ssids: Iterable[str],
        gps_lat: Optional[float],
        gps_lng: Optional[float],
        radius_m: Optional[float],
        building: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO rooms(name, building, wifi_ssids, gps_lat, gps_lng, radius_m)
                VALUES(%s, %s, %s, %s, %s, %s)
                """,
                (name, building, dump_json(sorted(wifi_ssids)), gps_lat, gps_lng, radius_m),
            )
            return int(cur.lastrowid)
