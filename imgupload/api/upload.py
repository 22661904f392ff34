from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.datastructures import UploadFile

from imgupload.core.config import Settings
from imgupload.core.errors import ErrorKind, UploadError
from imgupload.models.uploads import SessionStatus, UploadSession
from imgupload.services.upload_service import (
    NO_FILE_MESSAGE,
    RESET_MESSAGE,
    UploadCoordinator,
)

router = APIRouter(prefix="/image-upload", tags=["image-upload"])

ONE_FILE_MESSAGE = "Apenas um arquivo pode ser enviado por vez"


# Request and Response schemas

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadCreatedResponse(CamelModel):
    session_id: str
    file_name: str
    file_size: int
    mime_type: str
    status: SessionStatus
    uploaded_at: datetime


class SessionStatusResponse(CamelModel):
    session_id: str
    status: SessionStatus
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    created_at: datetime


class SessionResetResponse(CamelModel):
    session_id: str
    status: SessionStatus
    message: str


def success_response(data: CamelModel) -> dict:
    return {"success": True, "data": data.model_dump(mode="json", by_alias=True)}


# Dependencies

def get_coordinator(request: Request) -> UploadCoordinator:
    return request.app.state.coordinator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_image(
    request: Request,
    x_session_id: Optional[str] = Header(default=None),
    coordinator: UploadCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
):
    # the form owns spooled temp files, close it before returning
    async with request.form() as form:
        files = [f for f in form.getlist("file") if isinstance(f, UploadFile)]
        if not files:
            raise UploadError(ErrorKind.VALIDATION_ERROR, NO_FILE_MESSAGE)
        if len(files) > 1:
            raise UploadError(ErrorKind.VALIDATION_ERROR, ONE_FILE_MESSAGE, details={"files": len(files)})

        upload = files[0]
        # read one byte past the limit so an oversize file is still reported as too large
        content = await upload.read(settings.max_file_size + 1)
        file_size = len(content)
        if upload.size is not None and upload.size > file_size:
            file_size = upload.size
        file_name = upload.filename
        mime_type = upload.content_type

    session = coordinator.create_upload(
        file_buffer=content,
        file_name=file_name,
        mime_type=mime_type,
        session_id=x_session_id or None,
        file_size=file_size,
    )
    return success_response(_created(session))


@router.get("/session/{session_id}")
async def get_session_status(session_id: str, coordinator: UploadCoordinator = Depends(get_coordinator)):
    session = coordinator.get_session(session_id)
    return success_response(
        SessionStatusResponse(
            session_id=session.session_id,
            status=session.status,
            file_name=session.file_name,
            file_size=session.file_size,
            created_at=session.created_at,
        )
    )


@router.post("/session/{session_id}/reset")
async def reset_session(session_id: str, coordinator: UploadCoordinator = Depends(get_coordinator)):
    session = coordinator.reset_session(session_id)
    return success_response(
        SessionResetResponse(session_id=session.session_id, status=session.status, message=RESET_MESSAGE)
    )


def _created(session: UploadSession) -> UploadCreatedResponse:
    return UploadCreatedResponse(
        session_id=session.session_id,
        file_name=session.file_name,
        file_size=session.file_size,
        mime_type=session.mime_type,
        status=session.status,
        uploaded_at=session.updated_at,
    )
