"""
Configuration Management for VidTube
====================================

This module handles all application configuration using the Settings pattern
with Pydantic. Values come from environment variables (prefixed with
``VIDTUBE_``), an optional ``.env`` file, and the defaults below.

Startup code builds the store and media relay from a Settings instance and
hands them to the services explicitly, so nothing below opens a connection
by itself.

For tests, either clear the cache (``get_settings.cache_clear()``) or build
an isolated instance with ``get_settings_for_testing(**overrides)``.
"""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Example: VIDTUBE_MONGODB_URI=mongodb://db:27017

    Priority order (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values defined here
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDTUBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =================================================================
    # API Configuration
    # =================================================================
    api_host: str = Field(default="0.0.0.0", description="Host to bind the API server")
    api_port: int = Field(default=8000, description="Port to bind the API server")
    api_debug: bool = Field(
        default=False,
        description="Expose unexpected error details in responses. Never enable in production."
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the API from a browser"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Browsers must send the token cookies, so credentials are allowed"
    )

    # =================================================================
    # Storage Configuration
    # =================================================================
    storage_backend: Literal["mongo", "memory"] = Field(
        default="mongo",
        description="""
        Where user and subscription documents live.

        - mongo: MongoDB through motor (production)
        - memory: process-local dicts, lost on restart (tests, demos)
        """
    )
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string"
    )
    mongodb_database: str = Field(default="vidtube", description="MongoDB database name")
    mongodb_timeout_ms: int = Field(
        default=5000,
        description="Server selection timeout for MongoDB operations"
    )

    # =================================================================
    # Token Configuration
    # =================================================================
    access_token_secret: str = Field(
        default="change-me-access",
        description="HMAC secret for access tokens"
    )
    refresh_token_secret: str = Field(
        default="change-me-refresh",
        description="HMAC secret for refresh tokens. Must differ from the access secret."
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=15,
        gt=0,
        description="Lifetime of an access token"
    )
    refresh_token_expire_days: int = Field(
        default=10,
        gt=0,
        description="Lifetime of a refresh token"
    )

    # =================================================================
    # Password Hashing
    # =================================================================
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor. Tests lower this to 4."
    )

    # =================================================================
    # Cookie Configuration
    # =================================================================
    cookie_secure: bool = Field(
        default=True,
        description="Send token cookies over HTTPS only"
    )
    cookie_samesite: Literal["lax", "strict", "none"] = Field(
        default="lax",
        description="SameSite policy for token cookies"
    )

    # =================================================================
    # Media Host
    # =================================================================
    media_backend: Literal["cloudinary", "local"] = Field(
        default="cloudinary",
        description="""
        Where avatars and cover images are stored.

        - cloudinary: Cloudinary upload API (production)
        - local: a directory served by this API under local_media_url
        """
    )
    local_media_dir: str = Field(default="./media", description="Directory used by the local media backend")
    local_media_url: str = Field(default="/media", description="URL path the local media directory is served at")
    cloudinary_cloud_name: Optional[str] = Field(default=None, description="Cloudinary cloud name")
    cloudinary_api_key: Optional[str] = Field(default=None, description="Cloudinary API key")
    cloudinary_api_secret: Optional[str] = Field(default=None, description="Cloudinary API secret")
    cloudinary_folder: Optional[str] = Field(
        default="vidtube",
        description="Folder uploaded assets are placed in"
    )
    media_upload_timeout: int = Field(
        default=30,
        description="Timeout in seconds for a single upload to the media host"
    )

    # =================================================================
    # Upload Handling
    # =================================================================
    temp_file_dir: Optional[str] = Field(
        default=None,
        description="Directory for temporary uploads (system temp dir if unset)"
    )
    max_upload_size_mb: int = Field(default=10, description="Maximum size of a single image upload")
    allowed_image_formats: list[str] = Field(
        default=[".jpg", ".jpeg", ".png", ".gif", ".webp"],
        description="Image file extensions accepted for avatar and cover uploads"
    )

    # =================================================================
    # Rate Limiting
    # =================================================================
    rate_limit_enabled: bool = Field(default=True, description="Enable slowapi rate limiting")
    login_rate_limit: str = Field(default="10/minute", description="Limit for login attempts per IP")
    register_rate_limit: str = Field(default="5/minute", description="Limit for registrations per IP")
    refresh_rate_limit: str = Field(default="30/minute", description="Limit for token refreshes per IP")

    # =================================================================
    # Logging Configuration
    # =================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Python logging format string"
    )

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )


def configure_logging(settings: Settings) -> None:
    """Apply the configured level and format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached singleton).

    For testing, you can clear the cache:
        get_settings.cache_clear()
    """
    return Settings()


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a Settings instance with custom values for testing.

    Example:
        settings = get_settings_for_testing(
            storage_backend="memory",
            bcrypt_rounds=4,
        )
    """
    return Settings(**overrides)
