#!/usr/bin/env python3
"""
caching/drivers/memory.py - Process-local pool

Records live in a dict for the lifetime of the pool object. Values are deep
copied on the way in and out so callers never alias stored data.
"""

from __future__ import annotations

import copy
import logging
import pickle
from typing import Optional

from poolprobe.caching.base_pool import AbstractCachePool, Record
from poolprobe.caching.pool_protocol import CacheStats
from poolprobe.config.config_schema import MemoryConfig, PoolConfig

logger = logging.getLogger(__name__)


class MemoryPool(AbstractCachePool):
    driver_name = "Memory"

    def __init__(self, config: Optional[PoolConfig] = None) -> None:
        self._store: dict[str, Record] = {}
        super().__init__(config)

    @classmethod
    def default_config(cls) -> PoolConfig:
        return MemoryConfig()

    def _driver_read(self, key: str) -> Optional[Record]:
        record = self._store.get(key)
        return copy.deepcopy(record) if record is not None else None

    def _driver_write(self, key: str, record: Record) -> bool:
        self._store[key] = copy.deepcopy(record)
        return True

    def _driver_delete(self, key: str) -> bool:
        self._store.pop(key, None)
        return True

    def _driver_clear(self) -> bool:
        self._store.clear()
        return True

    def _driver_keys(self) -> list[str]:
        return list(self._store)

    def _driver_stats(self) -> CacheStats:
        try:
            size = len(pickle.dumps(self._store))
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.debug(f"Could not estimate memory pool size: {e}")
            size = 0
        return CacheStats(
            name=self.driver_name,
            kind="memory",
            info=f"Number of items in the memory pool: {len(self._store)}",
            entries=len(self._store),
            size_bytes=size,
        )
