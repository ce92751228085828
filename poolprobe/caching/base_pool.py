#!/usr/bin/env python3
"""
caching/base_pool.py - Shared pool behavior over storage primitives

``AbstractCachePool`` turns a handful of record-level storage primitives into
the full ``CachePoolProtocol`` surface: hit/miss handling, expiration, the tag
index, the deferred queue, static item instances, I/O counters and events.
Drivers only implement the ``_driver_*`` methods.

Records are plain dicts (see ``CacheItem.to_record``). Tag membership is kept in
reserved ``_TAG_<tag>`` records whose value maps item keys to expiration
timestamps; these records never surface as items.
"""

from __future__ import annotations

import fnmatch
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from poolprobe.caching.events import Event, EventManager, EventReferenceParameter
from poolprobe.caching.item import CacheItem, TagQuery, TagStrategy, record_is_expired
from poolprobe.caching.pool_protocol import CacheStats, DriverIO
from poolprobe.config.config_schema import PoolConfig
from poolprobe.core.exceptions import DriverCheckError, InvalidArgumentError, UnsupportedMethodError

logger = logging.getLogger(__name__)

TAG_PREFIX = "_TAG_"
RESERVED_KEY_CHARACTERS = frozenset("{}()/\\@:")

Record = dict[str, Any]


def validate_key(key: Any) -> str:
    """Reject keys that are empty, reserved or contain characters pools may not store."""
    if not isinstance(key, str) or not key:
        raise InvalidArgumentError(f"Cache key must be a non-empty string, got {key!r}", argument="key")
    if key.startswith(TAG_PREFIX):
        raise InvalidArgumentError(f"Cache key {key!r} uses the reserved prefix {TAG_PREFIX}", argument="key")
    bad = RESERVED_KEY_CHARACTERS.intersection(key)
    if bad:
        raise InvalidArgumentError(
            f"Cache key {key!r} contains reserved characters: {''.join(sorted(bad))}", argument="key"
        )
    return key


class AbstractCachePool(ABC):
    """Base class for the reference pools."""

    driver_name: str = ""
    supports_pattern: bool = True

    def __init__(self, config: Optional[PoolConfig] = None) -> None:
        self._config = config if config is not None else self.default_config()
        self._config.validate()
        self._io = DriverIO()
        self._event_manager = EventManager()
        self._item_instances: dict[str, CacheItem] = {}
        self._deferred: dict[str, CacheItem] = {}

        self._driver_check()
        self._driver_connect()
        logger.debug(f"{self.driver_name} pool ready")
        self._event_manager.dispatch(Event.CACHE_DRIVER_CHECKED, self, self._config)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(driver={self.driver_name!r})"

    # === STORAGE PRIMITIVES ===

    @classmethod
    def default_config(cls) -> PoolConfig:
        return PoolConfig()

    def _driver_check(self) -> None:
        """Raise ``DriverCheckError`` when a requirement of the backend is missing."""

    def _driver_connect(self) -> None:
        """Open the backend; raise ``DriverConnectError`` when it is unreachable."""

    @abstractmethod
    def _driver_read(self, key: str) -> Optional[Record]: ...

    @abstractmethod
    def _driver_write(self, key: str, record: Record) -> bool: ...

    @abstractmethod
    def _driver_delete(self, key: str) -> bool:
        """Remove ``key``; a missing key is not an error."""
        ...

    @abstractmethod
    def _driver_clear(self) -> bool: ...

    def _driver_keys(self) -> list[str]:
        raise UnsupportedMethodError(
            f"The {self.driver_name} driver cannot enumerate its keys", method="get_all_items"
        )

    @abstractmethod
    def _driver_stats(self) -> CacheStats: ...

    def close(self) -> None:
        """Release backend resources."""

    # === ITEM RETRIEVAL ===

    def _new_item(self, key: str) -> CacheItem:
        return CacheItem(key, self._config.default_ttl, detailed_date=self._config.item_detailed_date)

    def get_item(self, key: str) -> CacheItem:
        validate_key(key)
        static = self._config.use_static_item_caching
        if static and key in self._item_instances:
            return self._item_instances[key]

        item = self._new_item(key)
        record = self._driver_read(key)
        if record is not None and record_is_expired(record):
            logger.debug(f"Dropping expired record {key!r}")
            self._remove_from_tag_index(key, record.get("tags", ()))
            self._driver_delete(key)
            record = None

        if record is None:
            self._io.read_miss += 1
        else:
            item.load_record(record)
            self._io.read_hit += 1

        self._event_manager.dispatch(Event.CACHE_GET_ITEM, self, item)
        if static:
            self._item_instances[key] = item
        return item

    def get_items(self, keys: Iterable[str]) -> dict[str, CacheItem]:
        return {key: self.get_item(key) for key in keys}

    def has_item(self, key: str) -> bool:
        return self.get_item(key).is_hit()

    def get_items_by_tags(self, tags: Iterable[str], strategy: TagStrategy = TagStrategy.ONE) -> dict[str, CacheItem]:
        query = TagQuery.of(tags, strategy)
        candidates: list[str] = []
        for tag in query.tags:
            for key in self._read_tag_index(tag):
                if key not in candidates:
                    candidates.append(key)

        items: dict[str, CacheItem] = {}
        for key in candidates:
            item = self.get_item(key)
            if item.is_hit() and query.matches(item.get_tags()):
                items[key] = item
        return items

    def get_all_items(self, pattern: str = "") -> dict[str, CacheItem]:
        if pattern and not self.supports_pattern:
            raise InvalidArgumentError(
                f"The {self.driver_name} driver does not support the pattern argument", argument="pattern"
            )
        # Listeners may swap the fetch callback before it runs.
        fetcher = EventReferenceParameter(self._fetch_all_items)
        self._event_manager.dispatch(Event.CACHE_GET_ALL_ITEMS, self, fetcher)
        return fetcher(pattern)

    def _fetch_all_items(self, pattern: str = "") -> dict[str, CacheItem]:
        items: dict[str, CacheItem] = {}
        for key in self._driver_keys():
            if key.startswith(TAG_PREFIX):
                continue
            if pattern and not fnmatch.fnmatchcase(key, pattern):
                continue
            item = self.get_item(key)
            if item.is_hit():
                items[key] = item
        return items

    # === PERSISTENCE ===

    def save(self, item: CacheItem) -> bool:
        if not isinstance(item, CacheItem):
            raise InvalidArgumentError(f"Expected a CacheItem, got {type(item).__name__}", argument="item")
        key = validate_key(item.key)

        if item.is_expired():
            logger.debug(f"Item {key!r} is already expired, deleting instead of saving")
            return self.delete_item(key)

        record = item.to_record()
        for tag in item.get_removed_tags():
            self._update_tag_index(tag, key, None)
        for tag in item.get_tags():
            self._update_tag_index(tag, key, record["expiration"])

        if not self._driver_write(key, record):
            return False
        self._io.write_hit += 1
        item.mark_saved()
        self._deferred.pop(key, None)
        if self._config.use_static_item_caching:
            self._item_instances[key] = item
        self._event_manager.dispatch(Event.CACHE_SAVE_ITEM, self, item)
        return True

    def save_multiple(self, *items: CacheItem) -> bool:
        results = [self.save(item) for item in items]
        return all(results)

    def save_deferred(self, item: CacheItem) -> bool:
        if not isinstance(item, CacheItem):
            raise InvalidArgumentError(f"Expected a CacheItem, got {type(item).__name__}", argument="item")
        self._deferred[validate_key(item.key)] = item
        self._event_manager.dispatch(Event.CACHE_SAVE_DEFERRED_ITEM, self, item)
        return True

    def commit(self) -> bool:
        """Persist the deferred queue in insertion order."""
        success = True
        for key in list(self._deferred):
            item = self._deferred.pop(key)
            self._event_manager.dispatch(Event.CACHE_COMMIT_ITEM, self, item)
            if not self.save(item):
                logger.warning(f"Commit of deferred item {key!r} failed")
                success = False
        return success

    def delete_item(self, key: str) -> bool:
        validate_key(key)
        record = self._driver_read(key)
        if record is not None:
            self._remove_from_tag_index(key, record.get("tags", ()))
        self._item_instances.pop(key, None)
        self._deferred.pop(key, None)
        result = self._driver_delete(key)
        self._event_manager.dispatch(Event.CACHE_DELETE_ITEM, self, key)
        return result

    def delete_items(self, keys: Iterable[str]) -> bool:
        results = [self.delete_item(key) for key in keys]
        return all(results)

    def clear(self) -> bool:
        self._item_instances.clear()
        self._deferred.clear()
        result = self._driver_clear()
        self._event_manager.dispatch(Event.CACHE_CLEAR_ITEM, self)
        return result

    # === TAG INDEX ===

    def _read_tag_index(self, tag: str) -> dict[str, float]:
        record = self._driver_read(TAG_PREFIX + tag)
        if record is None:
            return {}
        now = time.time()
        return {key: expiration for key, expiration in record.get("value", {}).items() if expiration > now}

    def _update_tag_index(self, tag: str, key: str, expiration: Optional[float]) -> None:
        members = self._read_tag_index(tag)
        if expiration is None:
            members.pop(key, None)
        else:
            members[key] = expiration
        tag_key = TAG_PREFIX + tag
        if not members:
            self._driver_delete(tag_key)
            return
        self._driver_write(
            tag_key,
            {"key": tag_key, "value": members, "tags": [], "expiration": max(members.values())},
        )

    def _remove_from_tag_index(self, key: str, tags: Iterable[str]) -> None:
        for tag in tags:
            self._update_tag_index(tag, key, None)

    # === INTROSPECTION ===

    def get_stats(self) -> CacheStats:
        return self._driver_stats()

    def get_io(self) -> DriverIO:
        return self._io

    def get_driver_name(self) -> str:
        return self.driver_name

    def get_config(self) -> PoolConfig:
        return self._config

    def get_event_manager(self) -> EventManager:
        return self._event_manager

    def detach_all_items(self) -> None:
        self._item_instances.clear()

    def _require(self, condition: bool, requirement: str) -> None:
        if not condition:
            raise DriverCheckError(
                f"{self.driver_name} driver requirement not met: {requirement}",
                driver_name=self.driver_name,
                missing_requirement=requirement,
            )


__all__ = ["TAG_PREFIX", "AbstractCachePool", "validate_key"]
