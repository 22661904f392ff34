"""Upload workflow on top of the validator and the session store.

A session moves from NEW (or nothing) to COMPLETED when a file passes
validation. A completed session refuses further uploads until it is reset,
and a reset always hands out a brand new session id.
"""

import logging
import uuid
from typing import Optional

from imgupload.core.errors import ErrorKind, UploadError
from imgupload.core.validation import FileValidator, normalize_mime_type
from imgupload.models.uploads import SessionStatus, SessionStore, UploadSession, utcnow

log = logging.getLogger(__name__)

NO_FILE_MESSAGE = "Nenhum arquivo foi selecionado"
INVALID_SESSION_ID_MESSAGE = "ID de sessão inválido"
SESSION_NOT_FOUND_MESSAGE = "Sessão não encontrada"
SESSION_LIMIT_MESSAGE = (
    'Um arquivo já foi processado nesta sessão. Por favor, clique em "Iniciar Novo Upload" '
    "para fazer um novo upload"
)
VALIDATION_FAILED_MESSAGE = "Falha na validação do arquivo"
RESET_MESSAGE = "Sessão reiniciada com sucesso"


def is_valid_session_id(session_id: Optional[str]) -> bool:
    # only the canonical 8-4-4-4-12 form is accepted
    if not isinstance(session_id, str):
        return False
    try:
        parsed = uuid.UUID(session_id)
    except ValueError:
        return False
    return str(parsed) == session_id.lower()


def new_session_id() -> str:
    return str(uuid.uuid4())


class UploadCoordinator:
    def __init__(self, store: SessionStore, validator: FileValidator) -> None:
        self.store = store
        self.validator = validator

    def _require_session_id(self, session_id: Optional[str]) -> str:
        if not is_valid_session_id(session_id):
            raise UploadError(
                ErrorKind.VALIDATION_ERROR,
                INVALID_SESSION_ID_MESSAGE,
                details={"sessionId": session_id},
            )
        return str(uuid.UUID(session_id))

    def create_upload(
        self,
        file_buffer: Optional[bytes],
        file_name: Optional[str],
        mime_type: Optional[str],
        session_id: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> UploadSession:
        """Validate a file and record it as the completed upload of a session.

        ``file_size`` defaults to the buffer length; the HTTP layer passes the
        declared size when it stopped reading early. Without ``session_id`` a
        fresh session is created.
        """
        if file_buffer is None:
            raise UploadError(ErrorKind.VALIDATION_ERROR, NO_FILE_MESSAGE)
        if session_id is not None:
            session_id = self._require_session_id(session_id)
        if file_size is None:
            file_size = len(file_buffer)

        result = self.validator.validate(file_name, file_size, mime_type, file_buffer)
        if not result.is_valid:
            log.warning("Rejected upload %r: %s", file_name, result.error_code.value)
            raise UploadError(
                result.error_code or ErrorKind.VALIDATION_ERROR,
                result.error_message or VALIDATION_FAILED_MESSAGE,
                details=result.details.to_dict(),
            )

        with self.store.transaction():
            existing = self.store.get(session_id) if session_id else None
            if existing is not None and existing.status == SessionStatus.COMPLETED:
                raise UploadError(ErrorKind.SESSION_LIMIT_REACHED, SESSION_LIMIT_MESSAGE)

            now = utcnow()
            record = UploadSession(
                session_id=session_id or new_session_id(),
                status=SessionStatus.COMPLETED,
                file_name=file_name,
                file_size=file_size,
                mime_type=normalize_mime_type(mime_type),
                file_buffer=file_buffer,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self.store.upsert(record.session_id, record)

        log.info("Upload %r stored in session %s (%d bytes)", file_name, record.session_id, file_size)
        return record

    def get_session(self, session_id: Optional[str]) -> UploadSession:
        session_id = self._require_session_id(session_id)
        session = self.store.get(session_id)
        if session is None:
            raise UploadError(ErrorKind.NOT_FOUND, SESSION_NOT_FOUND_MESSAGE)
        return session

    def reset_session(self, session_id: Optional[str]) -> UploadSession:
        session_id = self._require_session_id(session_id)

        with self.store.transaction():
            if not self.store.exists(session_id):
                raise UploadError(ErrorKind.NOT_FOUND, SESSION_NOT_FOUND_MESSAGE)
            self.store.delete(session_id)

            fresh_id = new_session_id()
            while fresh_id == session_id or self.store.exists(fresh_id):
                fresh_id = new_session_id()

            now = utcnow()
            session = self.store.upsert(
                fresh_id,
                UploadSession(session_id=fresh_id, status=SessionStatus.NEW, created_at=now, updated_at=now),
            )

        log.info("Session %s reset, new session %s", session_id, fresh_id)
        return session
