from typing import List

from pydantic_settings import BaseSettings

from imgupload.core.signature import HEADER_BYTES_TO_READ


class Settings(BaseSettings):
    max_file_size: int = 15 * 1024 * 1024    # 15MB
    min_file_size: int = 1
    # bytes needed before a signature check is attempted
    header_bytes_to_read: int = HEADER_BYTES_TO_READ
    max_sessions: int = 100

    allowed_extensions: List[str] = [".png", ".jpg", ".jpeg"]
    allowed_mime_types: List[str] = ["image/png", "image/jpeg", "image/jpg"]

    api_prefix: str = "/api/internal"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "IMGUPLOAD_"

settings = Settings()
