from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType

from .attendance.factory import AttendanceStrategyFactory
from .attendance.location import LocationPolicy
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .classes.mysql_class_repository import MySQLClassRepository
from .classes.mysql_enrollment_repository import MySQLEnrollmentRepository
from .classes.service import ClassService
from .common.rate_limit import RateLimiter
from .database.connection import DBConfig, DatabaseConnection
from .faces.matcher import FaceMatcher
from .faces.mysql_face_attempt_repository import MySQLFaceAttemptRepository
from .faces.mysql_face_repository import MySQLFaceProfileRepository
from .faces.service import FaceEnrollmentService
from .notifications.mailer import SmtpConfig, build_mailer
from .notifications.service import NotificationService
from .users.mysql_token_repository import MySQLTokenRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AccountService, AuthService, UserService


@dataclass(frozen=True)
class Container:
    auth_service: AuthService
    account_service: AccountService
    user_service: UserService
    face_service: FaceEnrollmentService
    class_service: ClassService
    attendance_service: AttendanceService
    rate_limiter: RateLimiter


def build_notifications(settings: ModuleType) -> NotificationService:
    smtp = SmtpConfig(
        host=settings.SMTP_HOST,
        port=int(settings.SMTP_PORT),
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        use_ssl=bool(settings.SMTP_USE_SSL),
        sender=settings.MAIL_FROM,
        sender_name=settings.MAIL_FROM_NAME,
    )
    return NotificationService(build_mailer(smtp), app_url=settings.APP_URL, app_name=settings.APP_NAME)


def build_container(*, settings: ModuleType) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(settings.DB_CONFIG))

    users_repo = MySQLUserRepository(conn)
    tokens_repo = MySQLTokenRepository(conn)
    faces_repo = MySQLFaceProfileRepository(conn)
    classes_repo = MySQLClassRepository(conn)
    enrollments_repo = MySQLEnrollmentRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)

    notifications = build_notifications(settings)

    return Container(
        auth_service=AuthService(users_repo),
        account_service=AccountService(users_repo, tokens_repo, notifications),
        user_service=UserService(users_repo, notifications),
        face_service=FaceEnrollmentService(
            faces_repo,
            users_repo,
            descriptor_length=settings.FACE_DESCRIPTOR_LENGTH,
            default_threshold=settings.DEFAULT_CONFIDENCE_THRESHOLD,
        ),
        class_service=ClassService(classes_repo, enrollments_repo, users_repo),
        attendance_service=AttendanceService(
            attendance_repo,
            enrollments_repo,
            faces_repo,
            classes_repo,
            attempts=MySQLFaceAttemptRepository(conn),
            matcher=FaceMatcher(settings.FACE_MAX_DISTANCE),
            location_policy=LocationPolicy(
                require_evidence=settings.REQUIRE_LOCATION_EVIDENCE,
                default_radius_m=settings.DEFAULT_ROOM_RADIUS_M,
            ),
            strategy_factory=AttendanceStrategyFactory(),
            early_minutes=settings.EARLY_CHECKIN_MINUTES,
        ),
        rate_limiter=RateLimiter.from_settings(settings.RATE_LIMITS),
    )
