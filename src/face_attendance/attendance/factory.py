from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .schedule import CheckInWindow
from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_checkin(self, *, now: datetime, window: CheckInWindow) -> AttendanceStrategy:
        if window.is_late(now):
            return LateStrategy()
        return PresentStrategy()
