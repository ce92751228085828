"""
Reference pool drivers and the name registry used by the harness.

Usage:
    from poolprobe.caching.drivers import get_pool
    pool = get_pool("Memory")
"""

import logging
from typing import Optional

from poolprobe.caching.base_pool import AbstractCachePool
from poolprobe.caching.drivers.disk import DiskPool
from poolprobe.caching.drivers.memory import MemoryPool
from poolprobe.caching.drivers.sqlite import SqlitePool
from poolprobe.config.config_schema import PoolConfig
from poolprobe.core.exceptions import DriverNotFoundError

logger = logging.getLogger(__name__)

DRIVERS: dict[str, type[AbstractCachePool]] = {
    MemoryPool.driver_name: MemoryPool,
    DiskPool.driver_name: DiskPool,
    SqlitePool.driver_name: SqlitePool,
}


def get_pool(driver_name: str, config: Optional[PoolConfig] = None) -> AbstractCachePool:
    """Instantiate the pool registered under ``driver_name``.

    Raises:
        DriverNotFoundError: no driver has that name.
        DriverCheckError / DriverConnectError: the backend is unavailable.
    """
    driver = DRIVERS.get(driver_name)
    if driver is None:
        raise DriverNotFoundError(
            f"Driver {driver_name!r} does not exist (available: {', '.join(DRIVERS)})",
            driver_name=driver_name,
            missing_requirement=f"driver {driver_name}",
            available_drivers=list(DRIVERS),
        )
    logger.debug(f"Creating {driver_name} pool")
    return driver(config)


__all__ = ["DRIVERS", "DiskPool", "MemoryPool", "SqlitePool", "get_pool"]
