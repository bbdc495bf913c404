import pytest

from fakes import InMemoryUsers, RecordingMailer
from face_attendance.core.enums import Role, UserStatus
from face_attendance.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from face_attendance.notifications.service import NotificationService
from face_attendance.users.service import AuthService, UserService


def test_authenticate_active_user():
    users = InMemoryUsers()
    user = users.add(email="s@uni.edu", password="Secret123", full_name="Sam")

    session_user = AuthService(users).authenticate("S@Uni.edu", "Secret123")

    assert session_user.user_id == user.user_id
    assert session_user.role == Role.STUDENT
    assert session_user.full_name == "Sam"


@pytest.mark.parametrize("email,password", [("s@uni.edu", "Wrong123"), ("x@uni.edu", "Secret123"), ("bad", "x")])
def test_authenticate_bad_credentials(email, password):
    users = InMemoryUsers()
    users.add(email="s@uni.edu", password="Secret123")

    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        AuthService(users).authenticate(email, password)


@pytest.mark.parametrize("status", [UserStatus.PENDING, UserStatus.SUSPENDED, UserStatus.REJECTED])
def test_blocked_accounts_cannot_sign_in(status):
    users = InMemoryUsers()
    users.add(email="s@uni.edu", password="Secret123", status=status)

    with pytest.raises(AuthorizationError):
        AuthService(users).authenticate("s@uni.edu", "Secret123")


def _user_service(mailer=None):
    users = InMemoryUsers()
    admin = users.add(email="admin@uni.edu", role=Role.ADMIN)
    mailer = mailer or RecordingMailer()
    notifications = NotificationService(mailer, app_url="http://localhost", app_name="Face Attendance")
    return UserService(users, notifications), users, admin, mailer


def test_approval_needs_verified_email_and_enrolled_face():
    service, users, admin, _ = _user_service()
    unverified = users.add(email="a@uni.edu", status=UserStatus.PENDING, email_verified=False, face_enrolled=True)
    no_face = users.add(email="b@uni.edu", status=UserStatus.PENDING, email_verified=True, face_enrolled=False)

    for user in (unverified, no_face):
        with pytest.raises(ValidationError):
            service.decide_registration(
                current_role=Role.ADMIN, admin_id=admin.user_id, user_id=user.user_id, approve=True
            )
        assert users.get_by_id(user.user_id).status == UserStatus.PENDING


def test_approve_activates_and_emails():
    service, users, admin, mailer = _user_service()
    pending = users.add(email="p@uni.edu", status=UserStatus.PENDING, face_enrolled=True)

    user = service.decide_registration(
        current_role=Role.ADMIN, admin_id=admin.user_id, user_id=pending.user_id, approve=True
    )

    assert user.status == UserStatus.ACTIVE
    assert user.approved_by == admin.user_id
    assert mailer.subjects() == ["Registration Approved", "Welcome to Face Attendance"]

    with pytest.raises(ValidationError):
        service.decide_registration(
            current_role=Role.ADMIN, admin_id=admin.user_id, user_id=pending.user_id, approve=False
        )


def test_reject_records_reason_even_when_mail_fails():
    service, users, admin, mailer = _user_service(RecordingMailer(fail=True))
    pending = users.add(email="p@uni.edu", status=UserStatus.PENDING, email_verified=False)

    user = service.decide_registration(
        current_role=Role.ADMIN,
        admin_id=admin.user_id,
        user_id=pending.user_id,
        approve=False,
        reason="  blurry photo ",
    )

    assert user.status == UserStatus.REJECTED
    assert user.rejection_reason == "blurry photo"
    assert mailer.sent == []


def test_decision_requires_admin_and_existing_user():
    service, users, admin, _ = _user_service()

    with pytest.raises(AuthorizationError):
        service.decide_registration(current_role=Role.LECTURER, admin_id=2, user_id=1, approve=True)
    with pytest.raises(NotFoundError):
        service.decide_registration(current_role=Role.ADMIN, admin_id=admin.user_id, user_id=999, approve=True)


def test_concurrent_decision_is_a_conflict():
    service, users, admin, _ = _user_service()
    pending = users.add(email="p@uni.edu", status=UserStatus.PENDING, face_enrolled=True)
    original = users.set_registration_decision

    def decided_elsewhere(**kwargs):
        original(**kwargs)
        return False

    users.set_registration_decision = decided_elsewhere

    with pytest.raises(ConflictError):
        service.decide_registration(
            current_role=Role.ADMIN, admin_id=admin.user_id, user_id=pending.user_id, approve=True
        )


def test_list_users_filters_by_status():
    service, users, admin, _ = _user_service()
    users.add(email="p@uni.edu", status=UserStatus.PENDING)

    page = service.list_users(current_role=Role.ADMIN, status=UserStatus.PENDING)

    assert [u.email for u in page.items] == ["p@uni.edu"]
    with pytest.raises(AuthorizationError):
        service.list_users(current_role=Role.STUDENT)


def test_session_user_is_reloaded_with_the_stored_role():
    users = InMemoryUsers()
    user = users.add(email="s@uni.edu", full_name="Sam")
    users.update_user(user.user_id, role=Role.LECTURER)

    session_user = AuthService(users).load_session_user(user.user_id)

    assert session_user.role == Role.LECTURER
    assert session_user.email == "s@uni.edu"


@pytest.mark.parametrize("status", [UserStatus.PENDING, UserStatus.SUSPENDED, UserStatus.REJECTED])
def test_session_of_inactive_account_is_rejected(status):
    users = InMemoryUsers()
    user = users.add(email="s@uni.edu", status=status)

    with pytest.raises(AuthenticationError, match="Session is no longer valid"):
        AuthService(users).load_session_user(user.user_id)


def test_session_of_deleted_account_is_rejected():
    with pytest.raises(AuthenticationError):
        AuthService(InMemoryUsers()).load_session_user(99)


def test_list_users_filters_by_role_and_search():
    service, users, _, _ = _user_service()
    users.add(email="lee@uni.edu", role=Role.LECTURER, full_name="Dr. Lee")
    coded = users.add(email="amy@uni.edu", full_name="Amy Tran", student_code="S042")
    users.add(email="bob@uni.edu", full_name="Bob Vo", student_code="S043")

    students = service.list_users(current_role=Role.ADMIN, role=Role.STUDENT)
    by_code = service.list_users(current_role=Role.ADMIN, search=" s042 ")
    by_name = service.list_users(current_role=Role.ADMIN, role=Role.LECTURER, search="LEE")

    assert {u.email for u in students.items} == {"amy@uni.edu", "bob@uni.edu"}
    assert [u.user_id for u in by_code.items] == [coded.user_id]
    assert [u.email for u in by_name.items] == ["lee@uni.edu"]


def test_admin_updates_profile_role_and_status():
    service, users, _, _ = _user_service()
    user = users.add(email="s@uni.edu", full_name="Sam")

    updated = service.update_user(
        current_role=Role.ADMIN,
        user_id=user.user_id,
        full_name="Samuel Nguyen",
        email="Samuel@Uni.edu",
        phone="0901234567",
        role=Role.LECTURER,
        status=UserStatus.SUSPENDED,
    )

    assert updated.full_name == "Samuel Nguyen"
    assert updated.email == "samuel@uni.edu"
    assert updated.phone == "0901234567"
    assert updated.role == Role.LECTURER
    assert updated.status == UserStatus.SUSPENDED


def test_update_to_an_email_in_use_is_a_conflict():
    service, users, admin, _ = _user_service()
    user = users.add(email="s@uni.edu")

    with pytest.raises(ConflictError, match="Email already in use"):
        service.update_user(current_role=Role.ADMIN, user_id=user.user_id, email=admin.email)

    assert users.get_by_id(user.user_id).email == "s@uni.edu"


def test_keeping_the_same_email_is_not_a_conflict():
    service, users, _, _ = _user_service()
    user = users.add(email="s@uni.edu")

    updated = service.update_user(current_role=Role.ADMIN, user_id=user.user_id, email="s@uni.edu", full_name="Sam")

    assert updated.full_name == "Sam"


@pytest.mark.parametrize(
    "changes",
    [{}, {"full_name": " "}, {"full_name": "A"}, {"email": "not-an-email"}, {"phone": "123"}],
)
def test_update_rejects_empty_or_invalid_changes(changes):
    service, users, _, _ = _user_service()
    user = users.add(email="s@uni.edu")

    with pytest.raises(ValidationError):
        service.update_user(current_role=Role.ADMIN, user_id=user.user_id, **changes)


def test_update_requires_admin_and_existing_user():
    service, users, _, _ = _user_service()
    user = users.add(email="s@uni.edu")

    with pytest.raises(AuthorizationError):
        service.update_user(current_role=Role.LECTURER, user_id=user.user_id, full_name="Sam")
    with pytest.raises(NotFoundError):
        service.update_user(current_role=Role.ADMIN, user_id=999, full_name="Sam")


def test_admin_deletes_a_user():
    service, users, admin, _ = _user_service()
    user = users.add(email="s@uni.edu")

    service.delete_user(current_role=Role.ADMIN, admin_id=admin.user_id, user_id=user.user_id)

    assert users.get_by_id(user.user_id) is None


def test_admin_cannot_delete_own_account():
    service, users, admin, _ = _user_service()

    with pytest.raises(ValidationError, match="Cannot delete your own account"):
        service.delete_user(current_role=Role.ADMIN, admin_id=admin.user_id, user_id=admin.user_id)

    assert users.get_by_id(admin.user_id) is not None


def test_delete_missing_user_or_by_non_admin():
    service, users, admin, _ = _user_service()
    user = users.add(email="s@uni.edu")

    with pytest.raises(NotFoundError):
        service.delete_user(current_role=Role.ADMIN, admin_id=admin.user_id, user_id=999)
    with pytest.raises(AuthorizationError):
        service.delete_user(current_role=Role.LECTURER, admin_id=admin.user_id, user_id=user.user_id)


def test_lecturer_with_classes_cannot_be_deleted():
    service, users, admin, _ = _user_service()
    lecturer = users.add(email="lee@uni.edu", role=Role.LECTURER)
    users.referenced.add(lecturer.user_id)

    with pytest.raises(ConflictError, match="reassign"):
        service.delete_user(current_role=Role.ADMIN, admin_id=admin.user_id, user_id=lecturer.user_id)

    assert users.get_by_id(lecturer.user_id) is not None
