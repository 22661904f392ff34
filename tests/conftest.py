import pytest
from fastapi.testclient import TestClient

from imgupload.core.config import Settings
from imgupload.core.validation import FileValidator
from imgupload.main import create_app
from imgupload.models.uploads import SessionStore
from imgupload.services.upload_service import UploadCoordinator

PNG_SIGNATURE = bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A])
PNG_IEND = bytes([0x49, 0x45, 0x4E, 0x44, 0xAE, 0x42, 0x60, 0x82])
JPEG_SOI = bytes([0xFF, 0xD8, 0xFF, 0xE0])
JPEG_EOI = bytes([0xFF, 0xD9])


@pytest.fixture()
def png_bytes() -> bytes:
    # signature + 4 filler bytes + IEND, 20 bytes in total
    return PNG_SIGNATURE + b"\x00\x00\x00\x00" + PNG_IEND


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return JPEG_SOI + b"\x00" * 8 + JPEG_EOI


@pytest.fixture()
def settings() -> Settings:
    return Settings(max_sessions=5, log_level="DEBUG")


@pytest.fixture()
def validator(settings: Settings) -> FileValidator:
    return FileValidator(settings)


@pytest.fixture()
def store(settings: Settings) -> SessionStore:
    return SessionStore(max_sessions=settings.max_sessions)


@pytest.fixture()
def coordinator(store: SessionStore, validator: FileValidator) -> UploadCoordinator:
    return UploadCoordinator(store=store, validator=validator)


@pytest.fixture()
def client(settings: Settings) -> TestClient:
    return TestClient(create_app(settings))
