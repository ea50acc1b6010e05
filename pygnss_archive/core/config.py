"""
Configuration management for PyGNSS-Archive.

Uses Pydantic for validation and supports YAML configuration files
with environment variable expansion.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from pygnss_archive.core.exceptions import ConfigurationError


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in strings."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


class RemoteConfig(BaseModel):
    """Connection parameters for the remote GNSS data host.

    Every field the session needs is optional here so that an incomplete
    configuration can still be loaded; :meth:`require` reports what is
    missing at request time, before any connection attempt.
    """

    host: str | None = None
    port: int = 22
    username: str | None = None
    password: SecretStr | None = None
    key_path: Path | None = None
    key_passphrase: SecretStr | None = None
    root: str | None = None
    connect_timeout: float = 30.0
    verify_host_keys: bool = False

    @field_validator("host", "username", "root", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("password", mode="before")
    @classmethod
    def _blank_secret_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value:
            return None
        return value

    @property
    def has_secret(self) -> bool:
        """True when a password or a key file is configured."""
        return self.password is not None or self.key_path is not None

    def missing_fields(self) -> list[str]:
        """Names of required settings that are not set."""
        missing = []
        if not self.host:
            missing.append("host")
        if not self.username:
            missing.append("username")
        if not self.has_secret:
            missing.append("password")
        if not self.root:
            missing.append("root")
        return missing

    def require(self) -> None:
        """Raise ConfigurationError if anything required is missing."""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(missing)

    def describe(self) -> dict[str, Any]:
        """Configuration summary safe to display (no secrets)."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "root": self.root,
            "hasPassword": self.password is not None,
            "hasKey": self.key_path is not None,
        }


class StagingConfig(BaseModel):
    """Local staging and archiving configuration."""

    root: Path = Field(default=Path("temp/downloads"))
    probe_workers: int = Field(default=1, ge=1)
    compresslevel: int = Field(default=9, ge=0, le=9)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_dir: Path = Field(default=Path("logs"))
    log_to_file: bool = False
    log_to_console: bool = True
    json_format: bool = False


class Settings(BaseSettings):
    """Main settings container."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        env_prefix = "PYGNSS_ARCHIVE_"
        env_nested_delimiter = "__"


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML file.

    Args:
        config_path: Path to YAML configuration file.
                    If None, tries default locations.

    Returns:
        Settings instance.
    """
    search_paths = []

    if config_path:
        search_paths.append(Path(config_path))
    else:
        # Default search locations
        search_paths.extend([
            Path("config/settings.local.yaml"),
            Path("config/settings.yaml"),
            Path.home() / ".pygnss_archive" / "settings.yaml",
        ])

    config_data: dict[str, Any] = {}

    for path in search_paths:
        if path.exists():
            with open(path) as f:
                raw_data = yaml.safe_load(f)
                if raw_data:
                    config_data = expand_env_vars(raw_data)
            break

    return Settings(**config_data)
