"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Disks are declared as a JSON mapping in ``DRIVE_DISKS``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiskConfig(BaseModel):
    """Configuration of a single named disk."""

    driver: Literal["local", "memory"] = Field(description="Driver backing the disk")
    root: str | None = Field(
        default=None, description="Root directory (required for local disks)"
    )
    visibility: Literal["public", "private"] = Field(
        default="public", description="Default visibility of files on the disk"
    )
    serve_assets: bool = Field(
        default=False, description="Serve files over HTTP and allow URL generation"
    )
    base_path: str = Field(
        default="/uploads", description="URL prefix files are served under"
    )

    @field_validator("base_path")
    @classmethod
    def normalize_base_path(cls, v: str) -> str:
        """Keep a single leading slash and drop trailing ones."""
        stripped = v.strip().strip("/")
        return f"/{stripped}" if stripped else ""

    @model_validator(mode="after")
    def check_root(self) -> "DiskConfig":
        """Local disks cannot work without a root directory."""
        if self.driver == "local" and not self.root:
            raise ValueError("local disks require a root directory")
        return self

    @property
    def is_private(self) -> bool:
        """Check if files on the disk require a signed URL."""
        return self.visibility == "private"


def _default_disks() -> dict[str, DiskConfig]:
    return {
        "local": DiskConfig(
            driver="local",
            root="storage",
            visibility="public",
            serve_assets=True,
            base_path="/uploads",
        ),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = Field(default="FileDrive", description="Application name")
    app_version: str = Field(default="1.0.0", description="API version")
    app_env: Literal["development", "staging", "production"] = Field(
        default="production", description="Environment"
    )
    app_debug: bool = Field(default=False, description="Debug mode")
    app_host: str = Field(default="0.0.0.0", description="API host")
    app_port: int = Field(default=8000, description="API port")
    app_workers: int = Field(default=4, description="Number of workers")

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------
    app_key: str = Field(
        ...,
        min_length=16,
        description="Secret key used to sign URLs for private files",
    )

    # -------------------------------------------------------------------------
    # Drive
    # -------------------------------------------------------------------------
    drive_default_disk: str = Field(
        default="local", description="Disk returned when no name is given"
    )
    drive_disks: dict[str, DiskConfig] = Field(
        default_factory=_default_disks, description="Named disks"
    )
    drive_signed_url_expires_in: int = Field(
        default=1800, gt=0, description="Default signed URL lifetime in seconds"
    )
    drive_stream_chunk_size: int = Field(
        default=64 * 1024, gt=0, description="Chunk size used when streaming files"
    )
    drive_uploads_enabled: bool = Field(
        default=False, description="Expose the multipart upload endpoint"
    )
    drive_upload_tmp_dir: str | None = Field(
        default=None, description="Staging directory for uploads (system temp if unset)"
    )
    drive_max_upload_size_mb: int = Field(
        default=100, gt=0, description="Maximum upload size in MB"
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="json", description="Log format"
    )

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["GET", "HEAD", "POST", "OPTIONS"])
    cors_allow_headers: list[str] = Field(default=["*"])

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @model_validator(mode="after")
    def check_default_disk(self) -> "Settings":
        """Ensure the default disk is one of the configured disks."""
        if self.drive_default_disk not in self.drive_disks:
            raise ValueError(
                f"default disk '{self.drive_default_disk}' is not configured"
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
