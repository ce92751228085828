#!/usr/bin/env python3

"""
Configuration Schema Definitions.

Type-safe configuration schemas using dataclasses, with validation and
environment variable integration. Pool configs are handed to drivers as
opaque objects; ``HarnessConfig`` drives the test session itself.
"""

# === CORE INFRASTRUCTURE ===
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str = "Configuration error occurred", errors: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []


_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


# === POOL CONFIGURATION ===


@dataclass
class PoolConfig:
    """Options shared by every pool driver."""

    default_ttl: int = 900
    item_detailed_date: bool = False
    use_static_item_caching: bool = True

    def set_item_detailed_date(self, enabled: bool) -> "PoolConfig":
        self.item_detailed_date = enabled
        return self

    def set_use_static_item_caching(self, enabled: bool) -> "PoolConfig":
        self.use_static_item_caching = enabled
        return self

    def get_default_ttl(self) -> int:
        return self.default_ttl

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not isinstance(self.default_ttl, int) or self.default_ttl <= 0:
            errors.append(f"default_ttl must be a positive integer, got {self.default_ttl!r}")
        return errors

    def validate(self) -> None:
        errors = self.validation_errors()
        if errors:
            raise ConfigurationError(f"Invalid {type(self).__name__}: {'; '.join(errors)}", errors=errors)


@dataclass
class MemoryConfig(PoolConfig):
    """In-process pool; no extra options."""


@dataclass
class DiskConfig(PoolConfig):
    """Options for the diskcache-backed pool."""

    path: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "poolprobe-disk")
    size_limit: int = int(1e9)
    eviction_policy: str = "least-recently-stored"
    timeout: float = 60.0
    statistics: bool = True

    def validation_errors(self) -> list[str]:
        errors = super().validation_errors()
        if self.size_limit <= 0:
            errors.append("size_limit must be positive")
        if self.eviction_policy not in {
            "least-recently-stored",
            "least-recently-used",
            "least-frequently-used",
            "none",
        }:
            errors.append(f"Unknown eviction_policy {self.eviction_policy!r}")
        return errors


@dataclass
class SqliteConfig(PoolConfig):
    """Options for the SQLAlchemy-backed pool; any SQLAlchemy URL is accepted."""

    url: str = "sqlite:///:memory:"
    table_name: str = "poolprobe_items"
    connect_timeout: int = 5

    def validation_errors(self) -> list[str]:
        errors = super().validation_errors()
        if not self.url:
            errors.append("url is required")
        if not self.table_name.isidentifier():
            errors.append(f"table_name {self.table_name!r} is not a valid identifier")
        return errors


# === HARNESS CONFIGURATION ===


@dataclass
class HarnessConfig:
    """Test session settings."""

    log_level: str = "WARNING"
    log_file: str = ""
    mute_notices: bool = False
    color: bool = True
    project_root: Path = field(default_factory=Path.cwd)
    drivers: list[str] = field(default_factory=lambda: ["Memory", "Disk", "Sqlite"])

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "HarnessConfig":
        """Build a config from ``POOLPROBE_*`` environment variables (and ``.env``)."""
        load_dotenv(env_file)
        defaults = cls()
        root = os.getenv("POOLPROBE_PROJECT_ROOT")
        config = cls(
            log_level=os.getenv("POOLPROBE_LOG_LEVEL", defaults.log_level).upper(),
            log_file=os.getenv("POOLPROBE_LOG_FILE", defaults.log_file),
            mute_notices=_env_bool("POOLPROBE_MUTE_NOTICES", defaults.mute_notices),
            color=_env_bool("POOLPROBE_COLOR", defaults.color),
            project_root=Path(root) if root else defaults.project_root,
            drivers=_env_list("POOLPROBE_DRIVERS", defaults.drivers),
        )
        config.validate()
        return config

    def validate(self) -> None:
        errors: list[str] = []
        if self.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            errors.append(f"Unknown log level {self.log_level!r}")
        if not self.drivers:
            errors.append("At least one driver is required")
        if errors:
            raise ConfigurationError(f"Invalid HarnessConfig: {'; '.join(errors)}", errors=errors)


__all__ = [
    "ConfigurationError",
    "DiskConfig",
    "HarnessConfig",
    "MemoryConfig",
    "PoolConfig",
    "SqliteConfig",
]
