from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ..schedule import CheckInWindow
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Late check-in."""

    def decide_checkin(self, *, now: datetime, window: CheckInWindow) -> StatusDecision:
        minutes = int((now - window.starts_at).total_seconds() // 60)
        return StatusDecision(status=AttendanceStatus.LATE, note=f"late by {minutes} min")
