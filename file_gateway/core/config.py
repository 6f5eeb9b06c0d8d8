from pydantic_settings import BaseSettings
from typing import List, Literal

class Settings(BaseSettings):
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_BUCKET: str = "mybucket"
    MINIO_REGION: str = "us-east-1"
    MINIO_SECURE: bool = False

    # "direct": key is the file id, "embedded": key is <category>/<fileId>-<filename>
    ADDRESSING_SCHEME: Literal["direct", "embedded"] = "direct"
    DEFAULT_CATEGORY: str = "uploads"
    ENSURE_BUCKET_ON_STARTUP: bool = True

    UPLOAD_CONCURRENCY: int = 4
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024
    ALLOWED_MIME_TYPES: List[str] = []
    MAX_FILES_PER_REQUEST: int = 10

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["text", "json"] = "text"

    class Config:
        env_file = ".env"

    @property
    def endpoint_url(self) -> str | None:
        if not self.MINIO_ENDPOINT:
            return None
        scheme = "https" if self.MINIO_SECURE else "http"
        return f"{scheme}://{self.MINIO_ENDPOINT}"


settings = Settings()
