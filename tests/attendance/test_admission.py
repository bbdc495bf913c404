from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime

import pytest

from fakes import InMemoryAttendance, InMemoryFaceAttempts, make_room
from scenario import CLASS_DAY, ENROLLED_DESCRIPTOR, build_world
from face_attendance.attendance.location import LocationPolicy
from face_attendance.attendance.model import AttendanceEvidence
from face_attendance.core.enums import AttendanceMethod, AttendanceStatus, EnrollmentStatus
from face_attendance.core.exceptions import (
    DescriptorLengthMismatch,
    DuplicateCheckIn,
    FaceMismatch,
    FaceProfileMissing,
    LocationRejected,
    NotEnrolled,
    OutsideCheckInWindow,
    PersistenceError,
)

ON_CAMPUS = AttendanceEvidence(wifi_ssid="CAMPUS-WIFI", gps_lat=10.7769, gps_lng=106.7009, device_info="pytest")


def _check_in(world, *, descriptor=ENROLLED_DESCRIPTOR, evidence=ON_CAMPUS, now=CLASS_DAY, service=None):
    service = service or world.service()
    return service.record_check_in(
        user_id=world.student.user_id,
        class_id=world.class_id,
        descriptor=list(descriptor),
        evidence=evidence,
        now=now,
    )


def test_identical_descriptor_on_time_is_recorded_present(world):
    record = _check_in(world)

    assert record.status == AttendanceStatus.PRESENT
    assert record.method == AttendanceMethod.FACE_RECOGNITION
    assert record.confidence == 1.0
    assert record.attendance_date == CLASS_DAY.date()
    assert record.wifi_ssid == "CAMPUS-WIFI"
    assert record.device_info == "pytest"
    assert len(world.attendance.records) == 1


def test_late_check_in_is_recorded_late(world):
    record = _check_in(world, now=CLASS_DAY.replace(minute=20))

    assert record.status == AttendanceStatus.LATE
    assert record.note == "late by 20 min"


def test_offset_descriptor_is_face_mismatch(world):
    shifted = [v + 0.5 for v in ENROLLED_DESCRIPTOR]

    with pytest.raises(FaceMismatch) as exc:
        _check_in(world, descriptor=shifted)

    assert exc.value.confidence < 0.8
    assert exc.value.threshold == 0.8
    assert exc.value.kind == "FACE_MISMATCH"
    assert world.attendance.records == {}


def test_not_enrolled_rejected_even_with_matching_face(world):
    world.enrollments.upsert(
        user_id=world.student.user_id, class_id=world.class_id, status=EnrollmentStatus.INACTIVE
    )

    with pytest.raises(NotEnrolled):
        _check_in(world)


def test_missing_face_profile(world):
    world.profiles.delete_by_user(world.student.user_id)

    with pytest.raises(FaceProfileMissing):
        _check_in(world)


def test_descriptor_length_mismatch_propagates(world):
    with pytest.raises(DescriptorLengthMismatch):
        _check_in(world, descriptor=ENROLLED_DESCRIPTOR[:64])


def test_second_check_in_same_day_is_duplicate(world):
    _check_in(world)

    with pytest.raises(DuplicateCheckIn):
        _check_in(world, now=CLASS_DAY.replace(minute=12))
    assert len(world.attendance.records) == 1


def test_next_week_is_a_new_day(world):
    _check_in(world)
    _check_in(world, now=datetime(2025, 1, 14, 9, 5))

    assert len(world.attendance.records) == 2


def test_wrong_wifi_is_location_rejected(world):
    with pytest.raises(LocationRejected) as exc:
        _check_in(world, evidence=AttendanceEvidence(wifi_ssid="CAFE"))

    assert exc.value.reason == "wifi not allowed"


def test_far_gps_is_location_rejected(world):
    with pytest.raises(LocationRejected) as exc:
        _check_in(world, evidence=AttendanceEvidence(gps_lat=10.80, gps_lng=106.70))

    assert exc.value.reason == "too far from room"


def test_no_evidence_accepted_unless_policy_requires_it(world):
    assert _check_in(world, evidence=None).status == AttendanceStatus.PRESENT

    strict = build_world()
    with pytest.raises(LocationRejected) as exc:
        _check_in(strict, evidence=None, service=strict.service(location_policy=LocationPolicy(require_evidence=True)))
    assert exc.value.reason == "location evidence required"


def test_outside_window_rejected(world):
    with pytest.raises(OutsideCheckInWindow):
        _check_in(world, now=CLASS_DAY.replace(hour=11, minute=5))


def test_checks_run_in_order(world):
    # a face mismatch wins over a bad location and a closed window
    with pytest.raises(FaceMismatch):
        _check_in(
            world,
            descriptor=[v + 0.5 for v in ENROLLED_DESCRIPTOR],
            evidence=AttendanceEvidence(wifi_ssid="CAFE"),
            now=CLASS_DAY.replace(hour=23),
        )

    # location is checked before the schedule
    with pytest.raises(LocationRejected):
        _check_in(world, evidence=AttendanceEvidence(wifi_ssid="CAFE"), now=CLASS_DAY.replace(hour=23))


def test_room_radius_from_store_is_used(world):
    world.classes.add_room(make_room(1, wifi_ssids=frozenset(), radius_m=5000.0))

    record = _check_in(world, evidence=AttendanceEvidence(gps_lat=10.80, gps_lng=106.70))
    assert record.gps_lat == 10.80


def test_concurrent_duplicate_submissions_create_exactly_one_record():
    # both requests pass the read check before either inserts
    world = build_world(InMemoryAttendance(read_barrier=threading.Barrier(2)))
    service = world.service()

    def attempt():
        try:
            return _check_in(world, service=service)
        except DuplicateCheckIn as e:
            return e

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: attempt(), range(2)))

    assert len(world.attendance.records) == 1
    assert sum(isinstance(r, DuplicateCheckIn) for r in results) == 1
    assert sum(not isinstance(r, Exception) for r in results) == 1


def test_storage_failure_becomes_persistence_error():
    world = build_world(InMemoryAttendance(fail_with=ConnectionError("db gone")))

    with pytest.raises(PersistenceError) as exc:
        _check_in(world)

    assert str(exc.value) == "could not persist attendance"
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_profile_threshold_is_honoured(world):
    profile = world.profiles.get_by_user(world.student.user_id)
    world.profiles.by_user[profile.user_id] = replace(profile, confidence_threshold=0.99)

    # d = sqrt(128 * 0.0001) ~= 0.113 -> confidence 0.887
    with pytest.raises(FaceMismatch):
        _check_in(world, descriptor=[v + 0.01 for v in ENROLLED_DESCRIPTOR])


def test_face_mismatch_is_written_to_the_attempt_log(world):
    with pytest.raises(FaceMismatch) as exc:
        _check_in(world, descriptor=[v + 0.5 for v in ENROLLED_DESCRIPTOR])

    [attempt] = world.attempts.attempts
    assert attempt.user_id == world.student.user_id
    assert attempt.class_id == world.class_id
    assert attempt.success is False
    assert attempt.confidence == exc.value.confidence
    assert attempt.reason == "low confidence score"
    assert attempt.attendance_id is None


def test_admitted_check_in_is_written_to_the_attempt_log(world):
    record = _check_in(world)

    [attempt] = world.attempts.attempts
    assert attempt.success is True
    assert attempt.confidence == record.confidence
    assert attempt.attendance_id == record.attendance_id
    assert attempt.reason is None


def test_rejections_before_the_matcher_leave_no_attempt(world):
    world.enrollments.upsert(
        user_id=world.student.user_id, class_id=world.class_id, status=EnrollmentStatus.INACTIVE
    )

    with pytest.raises(NotEnrolled):
        _check_in(world)

    assert world.attempts.attempts == []


def test_attempt_log_failure_does_not_change_the_outcome(world):
    service = world.service(attempts=InMemoryFaceAttempts(fail_with=ConnectionError("log table gone")))

    record = _check_in(world, service=service)

    assert record.status == AttendanceStatus.PRESENT
    assert len(world.attendance.records) == 1
