"""
Runtime configuration helpers for the blog API.

Loads DATABASE_URL, storage credentials and delivery flags from the
environment, falling back to the .env file located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Required; must come from the environment or .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="Personal Blog API", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    site_url: str = Field(default="https://joeatteen.com", alias="SITE_URL")
    cors_allowed_origins: str = Field(default="", alias="CORS_ALLOWED_ORIGINS")

    # Storage
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")
    storage_bucket: str = Field(default="blog-images", alias="STORAGE_BUCKET")
    storage_s3_access_key: str | None = Field(default=None, alias="STORAGE_S3_ACCESS_KEY")
    storage_s3_secret_key: str | None = Field(default=None, alias="STORAGE_S3_SECRET_KEY")
    storage_s3_region: str = Field(default="us-east-1", alias="STORAGE_S3_REGION")

    # Delivery
    allow_unoptimized_images: bool = Field(default=False, alias="ALLOW_UNOPTIMIZED_IMAGES")
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    default_page_size: int = Field(default=6, alias="DEFAULT_PAGE_SIZE")

    admin_api_token: str | None = Field(default=None, alias="ADMIN_API_TOKEN")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def canonical_origin(self) -> str:
        return self.site_url.rstrip("/")

    @property
    def allowed_origins(self) -> list[str]:
        """Explicit CORS allow-list; the canonical site origin is always included."""

        origins = [self.canonical_origin]
        for origin in self.cors_allowed_origins.split(","):
            cleaned = origin.strip().rstrip("/")
            if cleaned and cleaned not in origins:
                origins.append(cleaned)
        return origins


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
