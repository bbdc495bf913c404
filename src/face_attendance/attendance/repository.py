from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import AttendanceFilters, AttendanceRecord, NewAttendance


class AttendanceRepository(Protocol):
    def get_for_user_class_and_date(
        self, user_id: int, class_id: int, attendance_date: date
    ) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(self, record: NewAttendance) -> AttendanceRecord:
        """Insert atomically.

        Raises DuplicateKeyError when a record for the same
        (user_id, class_id, attendance_date) already exists.
        """

        raise NotImplementedError

    def list_records(
        self, filters: AttendanceFilters, *, limit: int, offset: int
    ) -> tuple[Sequence[AttendanceRecord], int]:
        raise NotImplementedError
