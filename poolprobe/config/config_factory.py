#!/usr/bin/env python3

"""
Default per-driver pool configurations used by the harness.

Connection details can be overridden through ``POOLPROBE_DISK_PATH`` and
``POOLPROBE_SQLITE_URL`` (read from the environment or a ``.env`` file).
"""

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv

from poolprobe.config.config_schema import DiskConfig, MemoryConfig, PoolConfig, SqliteConfig

logger = logging.getLogger(__name__)


def _memory_config() -> PoolConfig:
    return MemoryConfig(item_detailed_date=True)


def _disk_config() -> PoolConfig:
    config = DiskConfig(item_detailed_date=True, eviction_policy="least-recently-used")
    path = os.getenv("POOLPROBE_DISK_PATH")
    if path:
        config.path = Path(path)
    return config


def _sqlite_config() -> PoolConfig:
    return SqliteConfig(
        item_detailed_date=True,
        url=os.getenv("POOLPROBE_SQLITE_URL", "sqlite:///:memory:"),
        table_name="poolprobe_test",
        connect_timeout=5,
    )


_FACTORIES: dict[str, Callable[[], PoolConfig]] = {
    "Memory": _memory_config,
    "Disk": _disk_config,
    "Sqlite": _sqlite_config,
}


class ConfigFactory:
    """Namespace for default driver configurations; not meant to be instantiated."""

    def __init__(self) -> None:
        raise TypeError("ConfigFactory cannot be instantiated")

    @staticmethod
    def get_default_config(driver_name: str) -> Optional[PoolConfig]:
        return ConfigFactory.get_default_configs().get(driver_name)

    @staticmethod
    def get_default_configs() -> dict[str, PoolConfig]:
        """Fresh config objects for every known driver."""
        load_dotenv()
        configs = {name: factory() for name, factory in _FACTORIES.items()}
        logger.debug(f"Built default configs for: {', '.join(configs)}")
        return configs


__all__ = ["ConfigFactory"]
