"""Ordered validation of an uploaded image.

The chain runs size, extension, MIME type, signature and integrity checks in
that order and stops at the first failure. Each stage returns a
:class:`StageOutcome` instead of raising, and the flags in
:class:`ValidationDetails` record how far the file got.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Tuple

from imgupload.core import signature
from imgupload.core.config import Settings, settings as default_settings
from imgupload.core.errors import ErrorKind
from imgupload.core.signature import ImageFormat

log = logging.getLogger(__name__)

EXTENSION_FORMATS = {
    ".png": ImageFormat.PNG,
    ".jpg": ImageFormat.JPEG,
    ".jpeg": ImageFormat.JPEG,
}

EMPTY_FILE_MESSAGE = "O arquivo parece estar vazio ou corrompido"
FILE_TOO_LARGE_MESSAGE = (
    "O arquivo excede o tamanho máximo permitido de {limit}MB. "
    "Por favor, envie um arquivo menor."
)
INVALID_EXTENSION_MESSAGE = (
    "O formato do arquivo não é suportado. Por favor, envie apenas imagens PNG ou JPEG."
)
INVALID_MIME_MESSAGE = "O arquivo selecionado não é uma imagem PNG ou JPEG válida"
NOT_AN_IMAGE_MESSAGE = (
    "O arquivo enviado não é uma imagem válida. Por favor, envie apenas imagens PNG ou JPEG."
)
FORMAT_MISMATCH_MESSAGE = (
    "O formato real do arquivo não corresponde à sua extensão. Por favor, verifique o arquivo."
)
CORRUPTED_MESSAGE = (
    "O arquivo {fmt} parece estar corrompido ou danificado. "
    "Por favor, tente enviar outro arquivo."
)
UNEXPECTED_ERROR_MESSAGE = "Erro inesperado durante a validação do arquivo"


@dataclass
class StageOutcome:
    ok: bool
    value: Any = None
    error_code: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StageOutcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "StageOutcome":
        return cls(ok=False, error_code=kind, error_message=message)


@dataclass
class ValidationDetails:
    size_valid: bool = False
    extension_valid: bool = False
    mime_valid: bool = False
    format_valid: bool = False
    signature_valid: bool = False
    integrity_valid: bool = False
    detected_format: Optional[str] = None
    declared_extension: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "sizeValid": self.size_valid,
            "extensionValid": self.extension_valid,
            "mimeValid": self.mime_valid,
            "formatValid": self.format_valid,
            "signatureValid": self.signature_valid,
            "integrityValid": self.integrity_valid,
            "detectedFormat": self.detected_format,
            "declaredExtension": self.declared_extension,
        }


@dataclass
class ValidationResult:
    is_valid: bool
    error_code: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    details: ValidationDetails = field(default_factory=ValidationDetails)


@dataclass
class FileValidationInput:
    file_name: Optional[str]
    file_size: Optional[int]
    mime_type: Optional[str]
    file_buffer: Optional[bytes]


def extract_extension(file_name: Optional[str]) -> str:
    # ".PNG" -> ".png"; names without a dot have no extension
    if not file_name or "." not in file_name:
        return ""
    return file_name[file_name.rfind("."):].lower()


def normalize_mime_type(mime_type: Optional[str]) -> str:
    # "IMAGE/PNG; charset=binary" -> "image/png"
    return (mime_type or "").split(";", 1)[0].strip().lower()


def validate_mime_type(mime_type: Optional[str], allowed: Optional[Iterable[str]] = None) -> StageOutcome:
    """Check a declared MIME type against the allow-list.

    Matching ignores case and any parameters after ``;``.
    """
    allowed_types = {t.lower() for t in (allowed if allowed is not None else default_settings.allowed_mime_types)}
    essence = normalize_mime_type(mime_type)
    if essence not in allowed_types:
        return StageOutcome.failure(ErrorKind.INVALID_FORMAT, INVALID_MIME_MESSAGE)
    return StageOutcome.success(essence)


Stage = Tuple[Callable[[FileValidationInput, ValidationDetails], StageOutcome], Tuple[str, ...], Optional[str]]


class FileValidator:
    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or default_settings
        # (check, detail flags set on success, detail field that takes the outcome value)
        self.stages: Tuple[Stage, ...] = (
            (self.check_size, ("size_valid",), None),
            (self.check_extension, ("extension_valid",), "declared_extension"),
            (self.check_mime_type, ("mime_valid",), None),
            (self.check_format, ("format_valid", "signature_valid"), "detected_format"),
            (self.check_integrity, ("integrity_valid",), None),
        )

    def validate(
        self,
        file_name: Optional[str],
        file_size: Optional[int],
        mime_type: Optional[str],
        file_buffer: Optional[bytes],
    ) -> ValidationResult:
        upload = FileValidationInput(file_name, file_size, mime_type, file_buffer)
        details = ValidationDetails()

        for check, flags, value_field in self.stages:
            try:
                outcome = check(upload, details)
            except Exception:
                log.exception("Unexpected error in %s for %r", check.__name__, file_name)
                return ValidationResult(
                    is_valid=False,
                    error_code=ErrorKind.VALIDATION_ERROR,
                    error_message=UNEXPECTED_ERROR_MESSAGE,
                    details=details,
                )

            if not outcome.ok:
                log.debug("%r failed %s: %s", file_name, check.__name__, outcome.error_code.value)
                return ValidationResult(
                    is_valid=False,
                    error_code=outcome.error_code,
                    error_message=outcome.error_message,
                    details=details,
                )

            for flag in flags:
                setattr(details, flag, True)
            if value_field:
                setattr(details, value_field, outcome.value)

        return ValidationResult(is_valid=True, details=details)

    # Stages

    def check_size(self, upload: FileValidationInput, details: ValidationDetails) -> StageOutcome:
        size = upload.file_size
        if size is None or size < self.config.min_file_size:
            return StageOutcome.failure(ErrorKind.CORRUPTED_FILE, EMPTY_FILE_MESSAGE)
        if size > self.config.max_file_size:
            limit = self.config.max_file_size // (1024 * 1024)
            return StageOutcome.failure(ErrorKind.FILE_TOO_LARGE, FILE_TOO_LARGE_MESSAGE.format(limit=limit))
        return StageOutcome.success()

    def check_extension(self, upload: FileValidationInput, details: ValidationDetails) -> StageOutcome:
        extension = extract_extension(upload.file_name)
        if extension not in self.config.allowed_extensions:
            return StageOutcome.failure(ErrorKind.INVALID_EXTENSION, INVALID_EXTENSION_MESSAGE)
        return StageOutcome.success(extension)

    def check_mime_type(self, upload: FileValidationInput, details: ValidationDetails) -> StageOutcome:
        return validate_mime_type(upload.mime_type, self.config.allowed_mime_types)

    def check_format(self, upload: FileValidationInput, details: ValidationDetails) -> StageOutcome:
        detected = signature.detect(upload.file_buffer, self.config.header_bytes_to_read)
        if detected is None:
            return StageOutcome.failure(ErrorKind.NOT_AN_IMAGE, NOT_AN_IMAGE_MESSAGE)
        if EXTENSION_FORMATS.get(details.declared_extension) != detected:
            return StageOutcome.failure(ErrorKind.INVALID_FORMAT, FORMAT_MISMATCH_MESSAGE)
        return StageOutcome.success(detected.value)

    def check_integrity(self, upload: FileValidationInput, details: ValidationDetails) -> StageOutcome:
        fmt = ImageFormat(details.detected_format)
        if not signature.has_trailer(upload.file_buffer, fmt):
            return StageOutcome.failure(ErrorKind.CORRUPTED_FILE, CORRUPTED_MESSAGE.format(fmt=fmt.name))
        return StageOutcome.success()
