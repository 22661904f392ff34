from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_EXTENSION = "INVALID_EXTENSION"
    INVALID_FORMAT = "INVALID_FORMAT"
    NOT_AN_IMAGE = "NOT_AN_IMAGE"
    CORRUPTED_FILE = "CORRUPTED_FILE"
    SESSION_LIMIT_REACHED = "SESSION_LIMIT_REACHED"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"


# every kind is client-caused, so everything lands in the 4xx range
STATUS_CODES = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.FILE_TOO_LARGE: 413,
    ErrorKind.INVALID_EXTENSION: 415,
    ErrorKind.INVALID_FORMAT: 415,
    ErrorKind.NOT_AN_IMAGE: 415,
    ErrorKind.CORRUPTED_FILE: 422,
    ErrorKind.SESSION_LIMIT_REACHED: 409,
    ErrorKind.CAPACITY_EXCEEDED: 429,
    ErrorKind.NOT_FOUND: 404,
}


class UploadError(Exception):
    """Terminal failure of an upload or session operation.

    Carries a stable ``kind`` for programs and a localized ``message`` for
    people. Nothing in the core retries these.
    """

    def __init__(self, kind: ErrorKind, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def __repr__(self) -> str:
        return f"UploadError({self.kind.value}, {self.message!r})"
