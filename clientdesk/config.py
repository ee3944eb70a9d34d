"""
Unified configuration for storage and other settings.

This module provides a single source of truth for where records are
persisted and how the record stores behave, shared by:
- The application factory (clientdesk.app)
- The CLI
- Scripts and tests

The data directory resolution:
1. Checks CLIENTDESK_DATA_DIR environment variable first
2. Falls back to ./data relative to the working directory

This module uses Pydantic Settings for type-safe configuration management
with support for .env files and environment variable overrides.
"""
import logging
import os
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default data directory for the directory and sqlite backends
DEFAULT_DATA_DIR = "data"

# Key prefix shared by every store's persistence entry
DEFAULT_STORAGE_PREFIX = "ocm_v2_"

STORAGE_BACKENDS = ("memory", "directory", "sqlite")


class Settings(BaseSettings):
    """Application settings for clientdesk.

    All configuration values can be set via CLIENTDESK_* environment
    variables or a .env file. Defaults are provided for development
    convenience.
    """

    model_config = SettingsConfigDict(
        env_prefix="CLIENTDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # Storage Configuration
    # ============================================================================
    storage_prefix: str = DEFAULT_STORAGE_PREFIX
    storage_backend: str = "directory"
    data_dir: str = ""  # Will be resolved by validator
    compression: bool = False
    codec: str = "json"
    validation: bool = True
    auto_save: bool = True
    version: str = "2.0.0"

    # ============================================================================
    # Logging Configuration
    # ============================================================================
    log_level: str = "INFO"

    # ============================================================================
    # Webhook Configuration
    # ============================================================================
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    webhook_timeout: float = 10.0
    webhook_retries: int = 3

    # ============================================================================
    # Environment Configuration
    # ============================================================================
    environment: str = "development"
    debug: bool = False

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Optional[str]) -> str:
        """
        Resolve the data directory to an absolute path.

        Args:
            v: Value from environment, .env file or constructor

        Returns:
            Absolute path to the data directory
        """
        if v:
            return os.path.abspath(os.path.expanduser(v))
        return os.path.abspath(DEFAULT_DATA_DIR)

    @field_validator("storage_backend")
    @classmethod
    def check_backend(cls, v: str) -> str:
        backend = v.strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {', '.join(STORAGE_BACKENDS)}")
        return backend

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    return Settings()


def ensure_data_directory(data_dir: Optional[str] = None) -> str:
    """
    Ensure the data directory exists.

    Args:
        data_dir: Directory to create. If None, uses the configured data_dir.

    Returns:
        The directory path
    """
    if data_dir is None:
        data_dir = get_settings().data_dir
    os.makedirs(data_dir, exist_ok=True)
    return data_dir


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    if settings.debug:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
