from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import AttendanceMethod, AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, optional_float
from .model import AttendanceFilters, AttendanceRecord, NewAttendance
from .repository import AttendanceRepository

_COLUMNS = """
    a.attendance_id, a.user_id, a.class_id, a.attendance_date, a.check_in_time, a.status, a.method,
    a.confidence, a.wifi_ssid, a.gps_lat, a.gps_lng, a.device_info, a.ip_address, a.note,
    u.full_name, c.code AS class_code
"""

_FROM = """
    FROM attendance_records a
    JOIN users u ON u.user_id = a.user_id
    JOIN classes c ON c.class_id = a.class_id
"""


def _row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        user_id=int(r["user_id"]),
        class_id=int(r["class_id"]),
        attendance_date=r["attendance_date"],
        check_in_time=r["check_in_time"],
        status=AttendanceStatus(r["status"]),
        method=AttendanceMethod(r["method"]),
        confidence=optional_float(r.get("confidence")),
        wifi_ssid=r.get("wifi_ssid"),
        gps_lat=optional_float(r.get("gps_lat")),
        gps_lng=optional_float(r.get("gps_lng")),
        device_info=r.get("device_info"),
        ip_address=r.get("ip_address"),
        note=r.get("note"),
        full_name=r.get("full_name"),
        class_code=r.get("class_code"),
    )


def _where(filters: AttendanceFilters) -> tuple[str, tuple]:
    clauses: list[str] = []
    params: list = []
    if filters.user_id is not None:
        clauses.append("a.user_id = %s")
        params.append(int(filters.user_id))
    if filters.class_id is not None:
        clauses.append("a.class_id = %s")
        params.append(int(filters.class_id))
    if filters.lecturer_id is not None:
        clauses.append("c.lecturer_id = %s")
        params.append(int(filters.lecturer_id))
    if filters.status is not None:
        clauses.append("a.status = %s")
        params.append(filters.status.value)
    if filters.start_date is not None:
        clauses.append("a.attendance_date >= %s")
        params.append(filters.start_date)
    if filters.end_date is not None:
        clauses.append("a.attendance_date <= %s")
        params.append(filters.end_date)
    where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, tuple(params)


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_user_class_and_date(
        self, user_id: int, class_id: int, attendance_date: date
    ) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} {_FROM}
                WHERE a.user_id=%s AND a.class_id=%s AND a.attendance_date=%s
                """,
                (int(user_id), int(class_id), attendance_date),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def create(self, record: NewAttendance) -> AttendanceRecord:
        # uq_attendance_user_class_day rejects the second insert; db_cursor maps it to DuplicateKeyError
        ev = record.evidence
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(
                    user_id, class_id, attendance_date, check_in_time, status, method, confidence,
                    wifi_ssid, gps_lat, gps_lng, device_info, ip_address, note
                )
                VALUES(%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    int(record.user_id),
                    int(record.class_id),
                    record.attendance_date,
                    record.check_in_time,
                    record.status.value,
                    record.method.value,
                    record.confidence,
                    ev.wifi_ssid,
                    ev.gps_lat,
                    ev.gps_lng,
                    ev.device_info,
                    ev.ip_address,
                    record.note,
                ),
            )
            # same transaction, so the joined name and class code come back with the new row
            cur.execute(f"SELECT {_COLUMNS} {_FROM} WHERE a.attendance_id=%s", (int(cur.lastrowid),))
            return _row_to_record(fetchone(cur))

    def list_records(
        self, filters: AttendanceFilters, *, limit: int, offset: int
    ) -> tuple[Sequence[AttendanceRecord], int]:
        where, params = _where(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total {_FROM} {where}", params)
            total = int((fetchone(cur) or {}).get("total", 0))
            cur.execute(
                f"""
                SELECT {_COLUMNS} {_FROM} {where}
                ORDER BY a.check_in_time DESC, a.attendance_id DESC
                LIMIT %s OFFSET %s
                """,
                params + (int(limit), int(offset)),
            )
            return [_row_to_record(r) for r in fetchall(cur)], total
