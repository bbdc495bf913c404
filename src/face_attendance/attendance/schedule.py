from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..classes.model import ClassSession
from ..core.constants import DEFAULT_EARLY_CHECKIN_MINUTES
from ..core.exceptions import OutsideCheckInWindow


@dataclass(frozen=True)
class CheckInWindow:
    """Check-in is open on [opens_at, closes_at]; on time until late_after."""

    opens_at: datetime
    starts_at: datetime
    late_after: datetime
    closes_at: datetime

    def contains(self, now: datetime) -> bool:
        return self.opens_at <= now <= self.closes_at

    def is_late(self, now: datetime) -> bool:
        return now > self.late_after


def window_for(
    session: ClassSession,
    on_date: date,
    *,
    early_minutes: int = DEFAULT_EARLY_CHECKIN_MINUTES,
) -> CheckInWindow:
    starts_at = datetime.combine(on_date, session.start_time)
    return CheckInWindow(
        opens_at=starts_at - timedelta(minutes=early_minutes),
        starts_at=starts_at,
        late_after=starts_at + timedelta(minutes=session.late_threshold_minutes),
        closes_at=datetime.combine(on_date, session.end_time),
    )


def check_window(
    session: ClassSession,
    now: datetime,
    *,
    early_minutes: int = DEFAULT_EARLY_CHECKIN_MINUTES,
) -> CheckInWindow:
    if session.day_of_week is not None and now.weekday() != session.day_of_week:
        raise OutsideCheckInWindow("this class is not scheduled today")

    window = window_for(session, now.date(), early_minutes=early_minutes)
    if now < window.opens_at:
        raise OutsideCheckInWindow(f"check-in opens at {window.opens_at:%H:%M}")
    if now > window.closes_at:
        raise OutsideCheckInWindow("check-in for this class has closed")
    return window
