# in-memory store for upload sessions, lives as long as the process does

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, Optional

from imgupload.core.errors import ErrorKind, UploadError

log = logging.getLogger(__name__)

CAPACITY_EXCEEDED_MESSAGE = (
    "O limite de sessões simultâneas foi atingido. Por favor, tente novamente mais tarde."
)


class SessionStatus(str, Enum):
    NEW = "nova"
    IN_PROGRESS = "em_andamento"
    COMPLETED = "concluida"
    ERROR = "erro"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadSession:
    session_id: str
    status: SessionStatus = SessionStatus.NEW
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    file_buffer: Optional[bytes] = field(default=None, repr=False)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        # the record keeps its own copy of mutable buffers
        if self.file_buffer is not None and not isinstance(self.file_buffer, bytes):
            self.file_buffer = bytes(self.file_buffer)

        if self.status == SessionStatus.COMPLETED:
            missing = [
                name for name in ("file_name", "file_size", "mime_type", "file_buffer")
                if getattr(self, name) is None
            ]
            if missing:
                raise ValueError(f"completed session {self.session_id} is missing {', '.join(missing)}")


class SessionStore:
    """Keyed map from session id to :class:`UploadSession`.

    All mutations go through one re-entrant lock. ``transaction()`` exposes
    that lock so callers can run a read-then-write sequence without another
    mutation slipping in between.
    """

    def __init__(self, max_sessions: int = 100) -> None:
        self.max_sessions = max_sessions
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator["SessionStore"]:
        with self._lock:
            yield self

    def get(self, session_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def upsert(self, session_id: str, record: UploadSession) -> UploadSession:
        if record.session_id != session_id:
            raise ValueError(f"record id {record.session_id} does not match key {session_id}")

        with self._lock:
            # capacity check and insert must be one critical section
            if session_id not in self._sessions and len(self._sessions) >= self.max_sessions:
                log.warning("Session store full (%d), rejecting %s", self.max_sessions, session_id)
                raise UploadError(ErrorKind.CAPACITY_EXCEEDED, CAPACITY_EXCEEDED_MESSAGE)
            self._sessions[session_id] = record
        return record

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
