import argparse
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imgupload.api import upload
from imgupload.core.config import Settings, settings as default_settings
from imgupload.core.errors import ErrorKind, UploadError
from imgupload.core.validation import FileValidator
from imgupload.models.uploads import SessionStore
from imgupload.services.upload_service import UploadCoordinator

log = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Erro inesperado ao processar a requisição"


def error_response(error: UploadError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={
            "success": False,
            "error": {
                "code": error.kind.value,
                "message": error.message,
                "details": error.details,
            },
        },
    )


async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    return error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        UploadError(ErrorKind.VALIDATION_ERROR, "Requisição inválida", details=jsonable_encoder(exc.errors()))
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # nothing in this service is a server fault from the client's point of view
    log.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
    return error_response(UploadError(ErrorKind.VALIDATION_ERROR, UNEXPECTED_ERROR_MESSAGE))


def create_app(config: Optional[Settings] = None) -> FastAPI:
    config = config or default_settings
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    app = FastAPI(title="Image Upload Service", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # one store per app, handed to the coordinator explicitly
    store = SessionStore(max_sessions=config.max_sessions)
    app.state.settings = config
    app.state.store = store
    app.state.coordinator = UploadCoordinator(store=store, validator=FileValidator(config))

    app.add_exception_handler(UploadError, upload_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    app.include_router(upload.router, prefix=config.api_prefix)
    return app


app = create_app()


def main():
    """Run the service with uvicorn"""
    parser = argparse.ArgumentParser(description="Image Upload Service")
    parser.add_argument("--port", type=int, default=8000, help="Port to run server on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind server to")

    args = parser.parse_args()

    log.info("Starting image upload service on %s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
