"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and an optional .env
file) with sensible defaults. Pydantic's BaseSettings gives us type
validation at startup and one place that documents every knob.

Bucket credentials can come from two places: the Cloudflare/S3 variables
below (one bucket per provider) or a JSON file at `bucket_config_file`
holding any number of buckets. See `config.buckets` for the loader.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Bucket Browser API"
    api_version: str = "v1"

    # Bucket sources
    bucket_config_file: str = Field(
        default="buckets.json",
        description="Path to a JSON file listing bucket descriptors. Missing file means env-only config."
    )

    # Cloudflare R2 (single bucket from env)
    cloudflare_bucket_name: str = Field(
        default="",
        description="R2 bucket name. Leave empty to skip the env-configured R2 bucket."
    )
    cloudflare_bucket_api: Optional[str] = Field(
        default=None,
        description="R2 S3 API endpoint, e.g. https://<account>.r2.cloudflarestorage.com"
    )
    cloudflare_access_key_id: str = Field(default="", description="R2 access key ID")
    cloudflare_secret_access_key: str = Field(default="", description="R2 secret access key")
    cloudflare_bucket_display_name: Optional[str] = Field(
        default=None,
        description="Label shown in the UI. Defaults to the bucket name."
    )

    # AWS S3 (single bucket from env)
    s3_upload_bucket: str = Field(
        default="",
        description="S3 bucket name. Leave empty to skip the env-configured S3 bucket."
    )
    s3_upload_region: str = Field(default="us-east-1", description="S3 bucket region")
    s3_upload_key: str = Field(default="", description="AWS access key ID")
    s3_upload_secret: str = Field(default="", description="AWS secret access key")
    s3_upload_display_name: Optional[str] = Field(
        default=None,
        description="Label shown in the UI. Defaults to the bucket name."
    )

    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory buckets instead of real R2/S3. Enables local dev without credentials."
    )

    # Application Behavior
    presign_expiry_seconds: int = Field(
        default=3600,
        description="Lifetime of presigned download/preview URLs."
    )
    default_max_keys: int = Field(
        default=100,
        description="Page size used when a listing request does not pass maxKeys."
    )
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum upload size in MB. Uploads are buffered in memory before the PUT."
    )
    download_chunk_size: int = Field(
        default=64 * 1024,
        description="Chunk size in bytes when streaming an object through the API."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:8000,http://127.0.0.1:8000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Report env variables that are missing for the env-configured buckets.

        A bucket is only considered configured once its name variable is
        set, so an empty environment is valid (buckets may come from the
        JSON file instead). Mock mode needs no credentials at all.
        """
        missing = []

        if self.storage_mock_mode:
            return missing

        if self.cloudflare_bucket_name:
            if not self.cloudflare_bucket_api:
                missing.append("CLOUDFLARE_BUCKET_API")
            if not self.cloudflare_access_key_id:
                missing.append("CLOUDFLARE_ACCESS_KEY_ID")
            if not self.cloudflare_secret_access_key:
                missing.append("CLOUDFLARE_SECRET_ACCESS_KEY")

        if self.s3_upload_bucket:
            if not self.s3_upload_key:
                missing.append("S3_UPLOAD_KEY")
            if not self.s3_upload_secret:
                missing.append("S3_UPLOAD_SECRET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
