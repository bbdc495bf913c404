import pytest

from fakes import InMemoryAttendance, InMemoryTokens, RecordingMailer
from scenario import CLASS_DAY, ENROLLED_DESCRIPTOR, build_world
from face_attendance.classes.service import ClassService
from face_attendance.common.rate_limit import InMemoryRateLimitStore, RateLimiter, RateLimitRule
from face_attendance.container import Container
from face_attendance.core.enums import EnrollmentStatus, Role, UserStatus
from face_attendance.faces.service import FaceEnrollmentService
from face_attendance.main import create_app
from face_attendance.notifications.service import NotificationService
from face_attendance.users.service import AccountService, AuthService, UserService


def _limiter(face_limit=100, auth_limit=100):
    rules = {
        "api": RateLimitRule(100, 60),
        "auth": RateLimitRule(auth_limit, 60),
        "face": RateLimitRule(face_limit, 300),
        "email": RateLimitRule(100, 3600),
    }
    return RateLimiter(InMemoryRateLimitStore(), rules)


def _app(world, *, limiter=None):
    notifications = NotificationService(RecordingMailer(), app_url="http://localhost", app_name="Face Attendance")
    container = Container(
        auth_service=AuthService(world.users),
        account_service=AccountService(world.users, InMemoryTokens(), notifications),
        user_service=UserService(world.users, notifications),
        face_service=FaceEnrollmentService(world.profiles, world.users, descriptor_length=128),
        class_service=ClassService(world.classes, world.enrollments, world.users),
        attendance_service=world.service(),
        rate_limiter=limiter or _limiter(),
    )
    return create_app(container, settings_module="face_attendance.settings.testing")


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    monkeypatch.setattr("face_attendance.attendance.service.now_local", lambda: CLASS_DAY)


@pytest.fixture()
def client(world):
    return _app(world).test_client()


def _login(client, email):
    resp = client.post("/api/auth/login", json={"email": email, "password": "Secret123"})
    assert resp.status_code == 200, resp.get_json()
    return resp


def _check_in(client, **overrides):
    body = {"classId": 1, "faceDescriptors": list(ENROLLED_DESCRIPTOR), "wifiSsid": "CAMPUS-WIFI"}
    body.update(overrides)
    return client.post("/api/attendance/check-in", json=body)


def test_check_in_requires_login(client):
    resp = _check_in(client)

    assert resp.status_code == 401
    assert resp.get_json()["kind"] == "UNAUTHENTICATED"


def test_login_me_and_logout(client):
    resp = _login(client, "student@uni.edu")
    assert resp.get_json()["data"]["user"]["studentCode"] == "S001"

    assert client.get("/api/auth/me").get_json()["data"]["user"]["email"] == "student@uni.edu"

    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_bad_password_is_401(client):
    resp = client.post("/api/auth/login", json={"email": "student@uni.edu", "password": "nope"})

    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "error": "Invalid email or password", "kind": "UNAUTHENTICATED"}


def test_student_check_in_then_duplicate(client):
    _login(client, "student@uni.edu")

    first = _check_in(client)
    assert first.status_code == 201
    data = first.get_json()["data"]
    assert data["status"] == "PRESENT"
    assert data["method"] == "FACE_RECOGNITION"
    assert data["confidence"] == 1.0
    assert data["date"] == "2025-01-07"

    second = _check_in(client)
    assert second.status_code == 409
    assert second.get_json()["kind"] == "DUPLICATE_CHECK_IN"


def test_face_mismatch_reports_confidence(client):
    _login(client, "student@uni.edu")

    resp = _check_in(client, faceDescriptors=[v + 0.5 for v in ENROLLED_DESCRIPTOR])

    body = resp.get_json()
    assert resp.status_code == 400
    assert body["kind"] == "FACE_MISMATCH"
    assert body["data"]["threshold"] == 0.8
    assert body["data"]["confidence"] < 0.8


def test_not_enrolled_is_403(world):
    world.enrollments.upsert(user_id=world.student.user_id, class_id=1, status=EnrollmentStatus.INACTIVE)
    client = _app(world).test_client()
    _login(client, "student@uni.edu")

    resp = _check_in(client)

    assert resp.status_code == 403
    assert resp.get_json()["kind"] == "NOT_ENROLLED"


def test_wrong_wifi_and_bad_payloads_are_400(client):
    _login(client, "student@uni.edu")

    assert _check_in(client, wifiSsid="CAFE").get_json()["kind"] == "LOCATION_REJECTED"
    assert _check_in(client, faceDescriptors="abc").status_code == 400
    assert _check_in(client, faceDescriptors=[0.1] * 64).get_json()["kind"] == "DESCRIPTOR_LENGTH_MISMATCH"
    assert _check_in(client, classId="x").status_code == 400
    assert _check_in(client, gpsLat=10.7).status_code == 400


def test_lecturer_cannot_use_face_check_in(client):
    _login(client, "lecturer@uni.edu")

    assert _check_in(client).status_code == 403


def test_storage_failure_is_503():
    world = build_world(InMemoryAttendance(fail_with=ConnectionError("db gone")))
    client = _app(world).test_client()
    _login(client, "student@uni.edu")

    resp = _check_in(client)

    assert resp.status_code == 503
    assert resp.get_json()["error"] == "could not persist attendance"


def test_face_endpoint_is_rate_limited(world):
    client = _app(world, limiter=_limiter(face_limit=1)).test_client()
    _login(client, "student@uni.edu")

    assert _check_in(client).status_code == 201
    resp = _check_in(client)

    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 1


def test_lecturer_lists_and_records_manual_attendance(client):
    _login(client, "lecturer@uni.edu")

    resp = client.post("/api/attendance", json={"userId": 2, "classId": 1, "status": "absent"})
    assert resp.status_code == 201
    assert resp.get_json()["data"]["method"] == "MANUAL"

    listing = client.get("/api/attendance?startDate=2025-01-01&limit=5").get_json()
    assert listing["meta"] == {"page": 1, "limit": 5, "total": 1, "totalPages": 1}
    assert client.get("/api/attendance?startDate=01/01/2025").status_code == 400


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nothing-here")

    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_suspended_account_loses_its_session(client, world):
    _login(client, "student@uni.edu")
    world.users.update_user(world.student.user_id, status=UserStatus.SUSPENDED)

    resp = _check_in(client)

    assert resp.status_code == 401
    assert resp.get_json()["kind"] == "UNAUTHENTICATED"
    assert world.attendance.records == {}
    # the cookie was cleared, so reactivation alone does not restore access
    world.users.update_user(world.student.user_id, status=UserStatus.ACTIVE)
    assert client.get("/api/auth/me").status_code == 401


def test_role_change_applies_to_an_open_session(client, world):
    _login(client, "admin@uni.edu")
    assert client.get("/api/admin/users").status_code == 200

    world.users.update_user(world.admin.user_id, role=Role.LECTURER)

    assert client.get("/api/admin/users").status_code == 403


def test_deleted_account_loses_its_session(client, world):
    _login(client, "student@uni.edu")
    world.users.delete_user(world.student.user_id)

    assert client.get("/api/auth/me").status_code == 401


def test_admin_lists_users_by_role_and_search(client):
    _login(client, "admin@uni.edu")

    students = client.get("/api/admin/users?role=student").get_json()
    found = client.get("/api/admin/users?search=S001").get_json()

    assert [u["email"] for u in students["data"]] == ["student@uni.edu"]
    assert [u["email"] for u in found["data"]] == ["student@uni.edu"]
    assert client.get("/api/admin/users?role=janitor").status_code == 400


def test_admin_updates_and_suspends_a_user(client, world):
    _login(client, "admin@uni.edu")

    resp = client.put("/api/admin/users/2", json={"fullName": "Student Renamed", "status": "suspended"})

    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["fullName"] == "Student Renamed"
    assert world.users.get_by_id(2).status == UserStatus.SUSPENDED

    conflict = client.put("/api/admin/users/2", json={"email": "lecturer@uni.edu"})
    assert conflict.status_code == 409
    assert client.put("/api/admin/users/2", json={}).status_code == 400
    assert client.put("/api/admin/users/2", json={"role": "owner"}).status_code == 400
    assert client.put("/api/admin/users/999", json={"fullName": "Nobody"}).status_code == 404


def test_suspended_student_cannot_sign_in_again(client):
    _login(client, "admin@uni.edu")
    client.put("/api/admin/users/2", json={"status": "SUSPENDED"})
    client.post("/api/auth/logout")

    resp = client.post("/api/auth/login", json={"email": "student@uni.edu", "password": "Secret123"})

    assert resp.status_code == 403


def test_admin_deletes_users(client, world):
    _login(client, "admin@uni.edu")

    assert client.delete("/api/admin/users/3").status_code == 400
    world.users.referenced.add(1)
    assert client.delete("/api/admin/users/1").status_code == 409

    resp = client.delete("/api/admin/users/2")

    assert resp.status_code == 200
    assert world.users.get_by_id(2) is None
    assert client.delete("/api/admin/users/2").status_code == 404


def test_user_management_is_admin_only(client):
    _login(client, "lecturer@uni.edu")

    assert client.put("/api/admin/users/2", json={"fullName": "Nope"}).status_code == 403
    assert client.delete("/api/admin/users/2").status_code == 403


def test_forwarded_for_is_ignored_without_trusted_proxies(world):
    client = _app(world, limiter=_limiter(auth_limit=1)).test_client()
    body = {"email": "student@uni.edu", "password": "Secret123"}

    first = client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.1"})
    second = client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.2"})

    assert first.status_code == 200
    assert second.status_code == 429


def test_forwarded_for_is_honoured_behind_a_trusted_proxy(world, monkeypatch):
    monkeypatch.setattr("face_attendance.settings.testing.TRUSTED_PROXY_HOPS", 1)
    client = _app(world, limiter=_limiter(auth_limit=1)).test_client()
    body = {"email": "student@uni.edu", "password": "Secret123"}

    first = client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.1"})
    second = client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.2"})
    repeat = client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": "203.0.113.1"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert repeat.status_code == 429
