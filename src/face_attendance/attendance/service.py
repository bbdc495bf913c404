from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from ..classes.repository import ClassRepository, EnrollmentRepository
from ..common.datetime_utils import now_local
from ..common.pagination import Page, PageRequest
from ..common.validators import require_unit_interval
from ..core.constants import DEFAULT_EARLY_CHECKIN_MINUTES
from ..core.enums import AttendanceMethod, AttendanceStatus, Role
from ..core.exceptions import (
    AuthorizationError,
    CheckInRejected,
    DuplicateCheckIn,
    DuplicateKeyError,
    FaceMismatch,
    FaceProfileMissing,
    LocationRejected,
    NotEnrolled,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..faces.matcher import FaceMatcher
from ..faces.model import FaceAttempt
from ..faces.repository import FaceAttemptRepository, FaceProfileRepository
from ..users.model import SessionUser
from .factory import AttendanceStrategyFactory
from .location import LocationPolicy
from .model import AttendanceEvidence, AttendanceFilters, AttendanceRecord, NewAttendance
from .repository import AttendanceRepository
from .schedule import check_window

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        enrollments: EnrollmentRepository,
        profiles: FaceProfileRepository,
        classes: ClassRepository,
        *,
        attempts: FaceAttemptRepository | None = None,
        matcher: FaceMatcher | None = None,
        location_policy: LocationPolicy | None = None,
        strategy_factory: AttendanceStrategyFactory | None = None,
        early_minutes: int = DEFAULT_EARLY_CHECKIN_MINUTES,
    ):
        self._attendance = attendance
        self._enrollments = enrollments
        self._profiles = profiles
        self._classes = classes
        self._attempts = attempts
        self._matcher = matcher or FaceMatcher()
        self._location = location_policy or LocationPolicy()
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._early_minutes = int(early_minutes)

    def record_check_in(
        self,
        *,
        user_id: int,
        class_id: int,
        descriptor: Sequence[float],
        evidence: AttendanceEvidence | None = None,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        """Admit or reject a face check-in.

        Checks run in a fixed order and the first failure is raised as a
        ``CheckInRejected`` subclass. No attendance is written until every
        check passed; the insert itself is guarded by the store's unique key on
        (user, class, day), so a concurrent duplicate still ends in
        ``DuplicateCheckIn``.

        Attempts that reach the matcher are written to the attempt log: a
        face mismatch as a failure, an admitted check-in as a success.
        """

        now = now or now_local()
        today = now.date()
        evidence = evidence or AttendanceEvidence()

        try:
            if not self._enrollments.get_active(user_id, class_id):
                raise NotEnrolled()

            profile = self._profiles.get_by_user(user_id)
            if not profile:
                raise FaceProfileMissing()

            result = self._matcher.match(profile, descriptor)
            if not result.matched:
                raise FaceMismatch(confidence=result.confidence, threshold=result.threshold)

            if self._attendance.get_for_user_class_and_date(user_id, class_id, today):
                raise DuplicateCheckIn()

            target = self._classes.get_with_room(class_id)
            if not target:
                raise NotFoundError("Class not found")

            check = self._location.validate(target.room, evidence)
            if not check.passed:
                raise LocationRejected(check.reason)

            window = check_window(target.session, now, early_minutes=self._early_minutes)
            strategy = self._factory.for_checkin(now=now, window=window)
            decision = strategy.decide_checkin(now=now, window=window)
        except CheckInRejected as e:
            logger.info(
                "check-in rejected user_id=%s class_id=%s kind=%s reason=%s", user_id, class_id, e.kind, e.reason
            )
            if isinstance(e, FaceMismatch):
                self._log_attempt(
                    FaceAttempt(
                        user_id=user_id,
                        class_id=class_id,
                        confidence=e.confidence,
                        success=False,
                        reason="low confidence score",
                    )
                )
            raise

        record = self._insert(
            NewAttendance(
                user_id=user_id,
                class_id=class_id,
                attendance_date=today,
                check_in_time=now,
                status=decision.status,
                method=AttendanceMethod.FACE_RECOGNITION,
                confidence=result.confidence,
                evidence=evidence,
                note=decision.note,
            )
        )
        self._log_attempt(
            FaceAttempt(
                user_id=user_id,
                class_id=class_id,
                confidence=result.confidence,
                success=True,
                attendance_id=record.attendance_id,
            )
        )
        logger.info(
            "check-in accepted user_id=%s class_id=%s status=%s confidence=%.3f",
            user_id,
            class_id,
            record.status.value,
            result.confidence,
        )
        return record

    def record_manual(
        self,
        *,
        current_user: SessionUser,
        user_id: int,
        class_id: int,
        status: AttendanceStatus,
        confidence: Optional[Any] = None,
        evidence: AttendanceEvidence | None = None,
        note: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        """Record attendance on behalf of a student (admin or the class's lecturer)."""

        now = now or now_local()
        session = self._classes.get_by_id(class_id)
        if not session:
            raise NotFoundError("Class not found")
        is_owner = current_user.role == Role.LECTURER and session.lecturer_id == current_user.user_id
        if current_user.role != Role.ADMIN and not is_owner:
            raise AuthorizationError("You cannot record attendance for this class")

        if not self._enrollments.get_active(user_id, class_id):
            raise NotEnrolled("student is not enrolled in this class")

        score = None if confidence is None else require_unit_interval(confidence, "Confidence")
        return self._insert(
            NewAttendance(
                user_id=user_id,
                class_id=class_id,
                attendance_date=now.date(),
                check_in_time=now,
                status=status,
                method=AttendanceMethod.MANUAL,
                confidence=score,
                evidence=evidence or AttendanceEvidence(),
                note=(note or "").strip() or f"recorded by user {current_user.user_id}",
            )
        )

    def _log_attempt(self, attempt: FaceAttempt) -> None:
        if self._attempts is None:
            return
        try:
            self._attempts.record(attempt)
        except Exception:
            # the admission outcome stands even when the audit row is lost
            logger.exception(
                "could not write face attempt log user_id=%s class_id=%s success=%s",
                attempt.user_id,
                attempt.class_id,
                attempt.success,
            )

    def _insert(self, record: NewAttendance) -> AttendanceRecord:
        try:
            return self._attendance.create(record)
        except DuplicateKeyError:
            logger.info(
                "duplicate attendance rejected by store user_id=%s class_id=%s date=%s",
                record.user_id,
                record.class_id,
                record.attendance_date,
            )
            raise DuplicateCheckIn()
        except Exception as e:
            logger.exception(
                "could not persist attendance user_id=%s class_id=%s", record.user_id, record.class_id
            )
            raise PersistenceError("could not persist attendance") from e

    def list_records(
        self,
        *,
        current_user: SessionUser,
        filters: AttendanceFilters | None = None,
        page: PageRequest | None = None,
    ) -> Page[AttendanceRecord]:
        filters = filters or AttendanceFilters()
        page = page or PageRequest()

        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must not be after end_date")

        if current_user.role == Role.STUDENT:
            if filters.user_id not in (None, current_user.user_id):
                raise AuthorizationError("Students can only view their own attendance")
            filters = AttendanceFilters(
                user_id=current_user.user_id,
                class_id=filters.class_id,
                status=filters.status,
                start_date=filters.start_date,
                end_date=filters.end_date,
            )
        elif current_user.role == Role.LECTURER:
            if filters.user_id is not None:
                raise AuthorizationError("Only admins can filter by user")
            filters = AttendanceFilters(
                class_id=filters.class_id,
                lecturer_id=current_user.user_id,
                status=filters.status,
                start_date=filters.start_date,
                end_date=filters.end_date,
            )

        items, total = self._attendance.list_records(filters, limit=page.limit, offset=page.offset)
        return Page(items=list(items), page=page.page, limit=page.limit, total=total)
