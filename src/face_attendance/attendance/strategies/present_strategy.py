from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ..schedule import CheckInWindow
from .base import AttendanceStrategy, StatusDecision


class PresentStrategy(AttendanceStrategy):
    """On-time check-in (early allowance included)."""

    def decide_checkin(self, *, now: datetime, window: CheckInWindow) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT)
