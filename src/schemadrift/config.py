"""
Centralized configuration for schemadrift.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (SCHEMADRIFT_*)
3. .env file
4. Default values

Example:
    from schemadrift.config import get_config

    config = get_config()
    print(config.history_file)  # From SCHEMADRIFT_HISTORY_FILE or default

    # Override at runtime
    config = get_config(strategy="centralized")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaDriftConfig(BaseSettings):
    """
    Central configuration for schemadrift.

    All settings can be overridden via environment variables
    prefixed with SCHEMADRIFT_.

    Example:
        export SCHEMADRIFT_STRATEGY=centralized
        export SCHEMADRIFT_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEMADRIFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backing files
    history_file: str = Field(
        default="db/schema_versions.yml",
        description="YAML stream of recorded schema snapshots",
    )
    registry_file: str = Field(
        default="db/schema_versions_centralized.yml",
        description="Model name -> current identifier mapping (centralized strategy)",
    )

    # Discovery
    models_dir: str = Field(
        default="models",
        description="Directory scanned for model modules",
    )
    exclude: str = Field(
        default="",
        description="Comma-separated substrings; matching model paths are skipped",
    )

    # Write-back
    strategy: Literal["inline", "centralized"] = Field(
        default="inline",
        description="Where a model's current identifier is persisted",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for schemadrift",
    )

    @field_validator("history_file", "registry_file", "models_dir")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand ~ and environment variables in paths."""
        return os.path.expanduser(os.path.expandvars(v))

    @property
    def history_path(self) -> Path:
        return Path(self.history_file)

    @property
    def registry_path(self) -> Path:
        return Path(self.registry_file)

    @property
    def models_path(self) -> Path:
        return Path(self.models_dir)

    @property
    def exclude_patterns(self) -> list[str]:
        """Split ``exclude`` into non-empty patterns."""
        return split_patterns(self.exclude)


def split_patterns(raw: str) -> list[str]:
    """Split a comma-separated pattern string, dropping blanks."""
    return [p.strip() for p in raw.split(",") if p.strip()]


# Global singleton
_config: Optional[SchemaDriftConfig] = None


def get_config(**overrides) -> SchemaDriftConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.
    """
    global _config

    if overrides or _config is None:
        _config = SchemaDriftConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
