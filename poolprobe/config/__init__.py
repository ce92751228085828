"""
Configuration Package

- config_schema: dataclass schemas for pools and the test session
- config_factory: default per-driver pool configurations
"""

from .config_factory import ConfigFactory
from .config_schema import (
    ConfigurationError,
    DiskConfig,
    HarnessConfig,
    MemoryConfig,
    PoolConfig,
    SqliteConfig,
)

__all__ = [
    "ConfigFactory",
    "ConfigurationError",
    "DiskConfig",
    "HarnessConfig",
    "MemoryConfig",
    "PoolConfig",
    "SqliteConfig",
]
