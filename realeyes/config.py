from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List, Union

_DEFAULT_ORIGINS = ",".join([
    "https://realeyes.ai",
    "https://www.realeyes.ai",
    "https://www.reddit.com",
    "https://old.reddit.com",
    "https://x.com",
    "https://twitter.com",
    "https://www.facebook.com",
    "https://www.instagram.com",
    "https://www.linkedin.com",
    "http://localhost:3000",
])


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DATABASE_URL: str = "sqlite://./realeyes.db"

    # Security
    JWT_SECRET: str = "dev-jwt-secret-change-me-very-long-32-chars-minimum"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRES_MIN: int = 1440

    # Callers
    ALLOWED_ORIGINS: Union[str, List[str]] = _DEFAULT_ORIGINS
    ORIGIN_OVERRIDE_HEADER: str = "X-Origin-Website"

    # Storage
    STORAGE_DRIVER: str = "local"
    STORAGE_DIR: str = "./storage"
    PUBLIC_BASE_URL: str = "http://localhost:8999/blobs"
    S3_BUCKET: str = "realeyes-ai-images"
    S3_REGION: str = ""
    S3_ENDPOINT_URL: str = ""
    BLOB_KEY_PREFIX: str = ""

    # Uploads
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    ALLOWED_MIME_TYPES: Union[str, List[str]] = "image/jpeg,image/png,image/webp"

    # Similarity: 0 means only identical perceptual hashes match
    PHASH_MAX_DISTANCE: int = 0
    PHASH_SCAN_LIMIT: int = 500

    # Feedback
    MAX_COMMENT_LENGTH: int = 2000

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT: str = "120/minute"

    # Observability
    METRICS_ENABLED: bool = False
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ""

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip().rstrip("/") for origin in v.split(",") if origin.strip()]
        return [str(origin).rstrip("/") for origin in v]

    @field_validator("ALLOWED_MIME_TYPES", mode="before")
    @classmethod
    def parse_mime_types(cls, v):
        if isinstance(v, str):
            return [m.strip().lower() for m in v.split(",") if m.strip()]
        return [str(m).lower() for m in v]

    # Pydantic v2 config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
