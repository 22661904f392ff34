import threading
import uuid

import pytest

from imgupload.core.errors import ErrorKind, UploadError
from imgupload.models.uploads import SessionStatus, SessionStore
from imgupload.services.upload_service import UploadCoordinator, is_valid_session_id


def test_create_upload_without_session(coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes) -> None:
    session = coordinator.create_upload(png_bytes, "photo.png", "image/png")

    assert is_valid_session_id(session.session_id)
    assert session.status == SessionStatus.COMPLETED
    assert session.file_name == "photo.png"
    assert session.file_size == 20
    assert session.mime_type == "image/png"
    assert session.file_buffer == png_bytes
    assert store.get(session.session_id) is session


def test_second_upload_into_completed_session_is_rejected(
    coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes, jpeg_bytes: bytes
) -> None:
    first = coordinator.create_upload(png_bytes, "photo.png", "image/png")

    with pytest.raises(UploadError) as exc:
        coordinator.create_upload(jpeg_bytes, "other.jpg", "image/jpeg", session_id=first.session_id)

    assert exc.value.kind == ErrorKind.SESSION_LIMIT_REACHED
    assert exc.value.status_code == 409
    assert store.get(first.session_id) is first


def test_upload_after_reset_completes_new_session(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    first = coordinator.create_upload(png_bytes, "photo.png", "image/png")
    fresh = coordinator.reset_session(first.session_id)

    second = coordinator.create_upload(png_bytes, "again.png", "image/png", session_id=fresh.session_id)

    assert second.session_id == fresh.session_id
    assert second.status == SessionStatus.COMPLETED
    assert second.created_at == fresh.created_at
    assert second.updated_at >= fresh.updated_at


def test_supplied_unknown_session_id_is_used(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    session_id = str(uuid.uuid4())
    session = coordinator.create_upload(png_bytes, "photo.png", "image/png", session_id=session_id)
    assert session.session_id == session_id


def test_validation_failure_leaves_store_untouched(
    coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes
) -> None:
    with pytest.raises(UploadError) as exc:
        coordinator.create_upload(png_bytes, "photo.jpg", "image/jpeg")

    assert exc.value.kind == ErrorKind.INVALID_FORMAT
    assert exc.value.details["extensionValid"] is True
    assert exc.value.details["formatValid"] is False
    assert store.count() == 0


def test_validation_failure_keeps_existing_session(
    coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes
) -> None:
    fresh = coordinator.reset_session(coordinator.create_upload(png_bytes, "a.png", "image/png").session_id)

    with pytest.raises(UploadError):
        coordinator.create_upload(b"\x00" * 20, "x.png", "image/png", session_id=fresh.session_id)

    assert store.get(fresh.session_id) is fresh


def test_too_large(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    with pytest.raises(UploadError) as exc:
        coordinator.create_upload(png_bytes, "photo.png", "image/png", file_size=16_000_000)
    assert exc.value.kind == ErrorKind.FILE_TOO_LARGE
    assert exc.value.status_code == 413


def test_missing_file(coordinator: UploadCoordinator) -> None:
    with pytest.raises(UploadError) as exc:
        coordinator.create_upload(None, "photo.png", "image/png")
    assert exc.value.kind == ErrorKind.VALIDATION_ERROR


@pytest.mark.parametrize("bad_id", ["not-a-uuid", "1234", "", str(uuid.uuid4()).replace("-", "")])
def test_malformed_session_ids(
    coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes, bad_id: str
) -> None:
    for call in (
        lambda: coordinator.create_upload(png_bytes, "photo.png", "image/png", session_id=bad_id),
        lambda: coordinator.get_session(bad_id),
        lambda: coordinator.reset_session(bad_id),
    ):
        with pytest.raises(UploadError) as exc:
            call()
        assert exc.value.kind == ErrorKind.VALIDATION_ERROR
    assert store.count() == 0


def test_get_session(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    created = coordinator.create_upload(png_bytes, "photo.png", "image/png")
    assert coordinator.get_session(created.session_id) is created


def test_get_unknown_session(coordinator: UploadCoordinator) -> None:
    with pytest.raises(UploadError) as exc:
        coordinator.get_session(str(uuid.uuid4()))
    assert exc.value.kind == ErrorKind.NOT_FOUND
    assert exc.value.status_code == 404


def test_reset_never_reuses_ids(coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes) -> None:
    old = coordinator.create_upload(png_bytes, "photo.png", "image/png")
    fresh = coordinator.reset_session(old.session_id)

    assert fresh.session_id != old.session_id
    assert fresh.status == SessionStatus.NEW
    assert fresh.file_name is None
    assert fresh.file_size is None
    assert fresh.mime_type is None
    assert fresh.file_buffer is None
    assert store.count() == 1

    with pytest.raises(UploadError) as exc:
        coordinator.get_session(old.session_id)
    assert exc.value.kind == ErrorKind.NOT_FOUND


def test_reset_unknown_session(coordinator: UploadCoordinator) -> None:
    with pytest.raises(UploadError) as exc:
        coordinator.reset_session(str(uuid.uuid4()))
    assert exc.value.kind == ErrorKind.NOT_FOUND


def test_capacity_exceeded_through_coordinator(
    coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes
) -> None:
    for _ in range(store.max_sessions):
        coordinator.create_upload(png_bytes, "photo.png", "image/png")

    with pytest.raises(UploadError) as exc:
        coordinator.create_upload(png_bytes, "photo.png", "image/png")
    assert exc.value.kind == ErrorKind.CAPACITY_EXCEEDED
    assert store.count() == store.max_sessions


def test_uppercase_uuid_is_accepted() -> None:
    assert is_valid_session_id(str(uuid.uuid4()).upper())
    assert not is_valid_session_id(None)
    assert not is_valid_session_id("{" + str(uuid.uuid4()) + "}")


def test_upper_case_id_addresses_the_same_session(
    coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes
) -> None:
    first = coordinator.create_upload(png_bytes, "photo.png", "image/png")

    with pytest.raises(UploadError) as exc:
        coordinator.create_upload(png_bytes, "photo.png", "image/png", session_id=first.session_id.upper())

    assert exc.value.kind == ErrorKind.SESSION_LIMIT_REACHED
    assert store.count() == 1
    assert coordinator.get_session(first.session_id.upper()) is first


def test_supplied_id_is_stored_in_canonical_form(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    session_id = str(uuid.uuid4())
    session = coordinator.create_upload(png_bytes, "photo.png", "image/png", session_id=session_id.upper())
    assert session.session_id == session_id


def test_reset_with_upper_case_id(coordinator: UploadCoordinator, store: SessionStore, png_bytes: bytes) -> None:
    old = coordinator.create_upload(png_bytes, "photo.png", "image/png")
    fresh = coordinator.reset_session(old.session_id.upper())
    assert not store.exists(old.session_id)
    assert store.count() == 1
    assert fresh.session_id != old.session_id


def test_concurrent_uploads_into_one_session(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    created = coordinator.create_upload(png_bytes, "photo.png", "image/png")
    session_id = coordinator.reset_session(created.session_id).session_id

    workers = 20
    barrier = threading.Barrier(workers)
    stored = []
    failures = []

    def upload() -> None:
        barrier.wait()
        try:
            stored.append(coordinator.create_upload(png_bytes, "photo.png", "image/png", session_id=session_id))
        except UploadError as e:
            failures.append(e.kind)

    threads = [threading.Thread(target=upload) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(stored) == 1
    assert failures == [ErrorKind.SESSION_LIMIT_REACHED] * (workers - 1)
    assert coordinator.get_session(session_id) is stored[0]


def test_mime_type_is_stored_normalized(coordinator: UploadCoordinator, png_bytes: bytes) -> None:
    session = coordinator.create_upload(png_bytes, "photo.png", "IMAGE/PNG; charset=binary")
    assert session.mime_type == "image/png"
