import pytest

from fakes import InMemoryFaceProfiles, InMemoryUsers
from face_attendance.core.exceptions import NotFoundError, ValidationError
from face_attendance.faces.service import FaceEnrollmentService


def _service(length: int = 128):
    users = InMemoryUsers()
    user = users.add(email="s@uni.edu", face_enrolled=False)
    profiles = InMemoryFaceProfiles()
    return FaceEnrollmentService(profiles, users, descriptor_length=length), users, profiles, user


def test_first_enrollment_creates_version_one_and_flags_user():
    service, users, _, user = _service()

    profile = service.enroll(user_id=user.user_id, descriptor=[0.1] * 128, quality_score=0.92)

    assert profile.version == 1
    assert profile.confidence_threshold == 0.8
    assert users.get_by_id(user.user_id).face_enrolled is True


def test_reenrollment_replaces_descriptor_and_bumps_version():
    service, _, _, user = _service()
    service.enroll(user_id=user.user_id, descriptor=[0.1] * 128, quality_score=0.9)

    profile = service.enroll(
        user_id=user.user_id, descriptor=[0.2] * 128, quality_score=0.95, confidence_threshold=0.7
    )

    assert profile.version == 2
    assert profile.descriptor == (0.2,) * 128
    assert profile.confidence_threshold == 0.7


@pytest.mark.parametrize(
    "descriptor,quality,threshold",
    [
        ([0.1] * 127, 0.9, None),
        ("not a list", 0.9, None),
        ([0.1] * 128, 1.5, None),
        ([0.1] * 128, 0.9, -0.1),
        ([0.1] * 127 + ["x"], 0.9, None),
    ],
)
def test_invalid_enrollment_input_rejected(descriptor, quality, threshold):
    service, _, profiles, user = _service()

    with pytest.raises(ValidationError):
        service.enroll(
            user_id=user.user_id, descriptor=descriptor, quality_score=quality, confidence_threshold=threshold
        )
    assert profiles.get_by_user(user.user_id) is None


def test_delete_profile_clears_flag_and_missing_profile_is_not_found():
    service, users, _, user = _service(length=4)
    service.enroll(user_id=user.user_id, descriptor=[0.1] * 4, quality_score=0.9)

    service.delete_profile(user.user_id)

    assert users.get_by_id(user.user_id).face_enrolled is False
    with pytest.raises(NotFoundError):
        service.get_profile(user.user_id)
    with pytest.raises(NotFoundError):
        service.delete_profile(user.user_id)
