# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Storage ===
    storage_root: Path = Path("~/.docorch/files")

    # === Page cache ===
    cache_backend: Literal["file", "none"] = "file"
    cache_discard_stale_fills: bool = False

    # === Analysis jobs ===
    analysis_poll_interval_s: float = 1.0
    analysis_poll_failure_limit: int = 10
    analysis_batch_size: int = 20
    analysis_large_document_pages: int = 400

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("analysis_poll_failure_limit", "log_retention")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.analysis_poll_interval_s <= 0:
            errors.append("ANALYSIS_POLL_INTERVAL_S must be > 0")

        if self.analysis_batch_size < 1:
            errors.append("ANALYSIS_BATCH_SIZE must be >= 1")

        if self.analysis_large_document_pages < 1:
            errors.append("ANALYSIS_LARGE_DOCUMENT_PAGES must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def resolved_storage_root(self) -> Path:
        """Storage root with the user directory expanded."""
        return self.storage_root.expanduser()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-session config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
