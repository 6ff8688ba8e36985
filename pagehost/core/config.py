"""
PageHost — Configuration Management
====================================
Centralized, validated configuration with environment-based overrides.
All settings are loaded from environment variables with sensible defaults.

Usage:
    from pagehost.core.config import get_settings
    settings = get_settings()
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Root configuration object.

    All values can be overridden via environment variables prefixed with ``PAGEHOST_``.
    Example: ``PAGEHOST_DATA_DIR=/var/lib/pagehost``
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGEHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────────────────
    app_name: str = "pagehost"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # ── Storage (catalog + content blobs) ────────────────────────────────
    data_dir: Path = Path("./data")
    catalog_filename: str = "catalog.json"
    uploads_dirname: str = "uploads"

    # ── Versioning ───────────────────────────────────────────────────────
    max_backups: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Retired revisions kept per service before the oldest is evicted.",
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Largest accepted HTML document, in bytes.",
    )
    max_display_name_length: int = Field(default=255, ge=1, le=4096)

    # ── Forwarding proxy ─────────────────────────────────────────────────
    proxy_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound on a single upstream call made by the proxy.",
    )

    # ── Logging & Observability ──────────────────────────────────────────
    log_level: str = Field(
        default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_format: str = "json"  # "json" or "console"

    # ── Correlation ──────────────────────────────────────────────────────
    correlation_id_header: str = "X-Correlation-ID"

    # ── Server ───────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)

    @property
    def catalog_path(self) -> Path:
        return self.data_dir / self.catalog_filename

    @property
    def uploads_dir(self) -> Path:
        return self.data_dir / self.uploads_dirname


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the singleton Settings instance.

    Cached so environment is read exactly once per process lifetime.
    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return Settings()
