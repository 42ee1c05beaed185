# src/rooms_api/settings.py
from typing import List, Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    The storage backend is chosen from the credentials present: a non-empty
    UPLOADTHING_TOKEN selects UploadThing, anything else falls back to Cloudinary.

    Usage:
        from rooms_api.settings import get_settings
        settings = get_settings()
        backend = settings.storage_backend
    """

    # Application Settings
    app_name: str = Field(
        default="rooms-api",
        description="Application name"
    )

    # UploadThing (flat keyspace)
    uploadthing_token: Optional[str] = Field(
        default=None,
        alias="UPLOADTHING_TOKEN",
        description="UploadThing token; its presence selects the UploadThing backend"
    )

    uploadthing_api_url: str = Field(
        default="https://api.uploadthing.com",
        alias="UPLOADTHING_API_URL"
    )

    uploadthing_file_url_base: str = Field(
        default="https://utfs.io/f",
        alias="UPLOADTHING_FILE_URL_BASE",
        description="Base used to build a download URL when none is resolved"
    )

    # Cloudinary (prefix keyspace)
    cloudinary_cloud_name: Optional[str] = Field(
        default=None,
        alias="CLOUDINARY_CLOUD_NAME"
    )

    cloudinary_api_key: Optional[str] = Field(
        default=None,
        alias="CLOUDINARY_API_KEY"
    )

    cloudinary_api_secret: Optional[str] = Field(
        default=None,
        alias="CLOUDINARY_API_SECRET"
    )

    cloudinary_upload_preset: Optional[str] = Field(
        default="senddown",
        alias="CLOUDINARY_UPLOAD_PRESET"
    )

    cloudinary_api_url: str = Field(
        default="https://api.cloudinary.com",
        alias="CLOUDINARY_API_URL"
    )

    # HTTP surface
    cors_allow_origins: List[str] = Field(
        default=["http://localhost:3000"],
        alias="CORS_ALLOW_ORIGINS"
    )

    public_base_url: str = Field(
        default="http://localhost:8000",
        alias="PUBLIC_BASE_URL",
        description="Base URL used when building shareable room links"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    @field_validator("uploadthing_token", mode="before")
    @classmethod
    def blank_token_is_unset(cls, v):
        """An empty UPLOADTHING_TOKEN must not switch backends."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def uploadthing_enabled(self) -> bool:
        return bool(self.uploadthing_token)

    @property
    def storage_backend(self) -> str:
        """Name of the storage backend selected by the configured credentials."""
        return "uploadthing" if self.uploadthing_enabled else "cloudinary"

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
