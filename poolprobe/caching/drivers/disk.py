#!/usr/bin/env python3
"""
caching/drivers/disk.py - diskcache-backed pool

Stores records in a ``diskcache.Cache`` directory. Record expiration is also
handed to diskcache so stale entries are culled by the backend.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from diskcache import Cache, Timeout

from poolprobe.caching.base_pool import AbstractCachePool, Record
from poolprobe.caching.pool_protocol import CacheStats
from poolprobe.config.config_schema import DiskConfig, PoolConfig
from poolprobe.core.exceptions import DriverCheckError, DriverConnectError, DriverIOError

logger = logging.getLogger(__name__)


class DiskPool(AbstractCachePool):
    driver_name = "Disk"

    def __init__(self, config: Optional[PoolConfig] = None) -> None:
        self._cache: Optional[Cache] = None
        super().__init__(config)

    @classmethod
    def default_config(cls) -> PoolConfig:
        return DiskConfig()

    @property
    def disk_config(self) -> DiskConfig:
        return self._config  # type: ignore[return-value]

    def _driver_check(self) -> None:
        self._require(isinstance(self._config, DiskConfig), "a DiskConfig instance")
        path = self.disk_config.path
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DriverCheckError(
                f"Cache directory {path} cannot be created: {e}",
                driver_name=self.driver_name,
                missing_requirement=f"writable directory {path}",
            ) from e

    def _driver_connect(self) -> None:
        config = self.disk_config
        try:
            self._cache = Cache(
                str(config.path),
                size_limit=config.size_limit,
                eviction_policy=config.eviction_policy,
                timeout=config.timeout,
                statistics=config.statistics,
            )
        except (OSError, Timeout) as e:
            raise DriverConnectError(
                f"Could not open disk cache at {config.path}: {e}",
                driver_name=self.driver_name,
                endpoint=str(config.path),
            ) from e
        logger.debug(f"DiskCache opened at {config.path} (eviction={config.eviction_policy})")

    @property
    def cache(self) -> Cache:
        if self._cache is None:
            raise DriverConnectError("Disk cache is closed", driver_name=self.driver_name)
        return self._cache

    def _driver_read(self, key: str) -> Optional[Record]:
        try:
            return self.cache.get(key, default=None, retry=True)
        except Timeout as e:
            raise DriverIOError(f"Timed out reading {key!r}", operation="read") from e

    def _driver_write(self, key: str, record: Record) -> bool:
        expire = float(record["expiration"]) - time.time()
        try:
            return bool(self.cache.set(key, record, expire=max(expire, 1.0), retry=True))
        except Timeout as e:
            raise DriverIOError(f"Timed out writing {key!r}", operation="write") from e

    def _driver_delete(self, key: str) -> bool:
        try:
            self.cache.delete(key, retry=True)
        except Timeout as e:
            raise DriverIOError(f"Timed out deleting {key!r}", operation="delete") from e
        return True

    def _driver_clear(self) -> bool:
        try:
            count = self.cache.clear(retry=True)
        except Timeout as e:
            raise DriverIOError("Timed out clearing the disk cache", operation="clear") from e
        logger.debug(f"Cleared {count} disk cache entries")
        return True

    def _driver_keys(self) -> list[str]:
        return [key for key in self.cache.iterkeys() if isinstance(key, str)]

    def _driver_stats(self) -> CacheStats:
        cache = self.cache
        hits, misses = cache.stats(enable=self.disk_config.statistics, reset=False)
        entries = len(cache)
        return CacheStats(
            name=self.driver_name,
            kind="disk",
            info=f"Disk cache at {self.disk_config.path} holds {entries} entries",
            entries=entries,
            size_bytes=cache.volume(),
            extra={"hits": hits, "misses": misses, "eviction_policy": self.disk_config.eviction_policy},
        )

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None
