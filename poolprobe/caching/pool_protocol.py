#!/usr/bin/env python3
"""
caching/pool_protocol.py - Cache Pool Capability Interface

Defines the interface the contract verifier drives. Any pool exposing these
members can be verified; backends with a different surface need an adapter
rather than special-casing in the verifier.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Protocol, runtime_checkable

from poolprobe.caching.events import EventManager
from poolprobe.caching.item import CacheItem, TagStrategy

if TYPE_CHECKING:
    from poolprobe.config.config_schema import PoolConfig


# =============================================================================
# DRIVER STATISTICS
# =============================================================================


@dataclass
class DriverIO:
    """Read/write counters maintained by a pool."""

    read_hit: int = 0
    read_miss: int = 0
    write_hit: int = 0

    def get_read_hit(self) -> int:
        return self.read_hit

    def get_read_miss(self) -> int:
        return self.read_miss

    def get_write_hit(self) -> int:
        return self.write_hit

    def reset(self) -> None:
        self.read_hit = self.read_miss = self.write_hit = 0


@dataclass
class CacheStats:
    """Driver statistics reported by ``get_stats()``.

    ``size_bytes`` is approximate and may be 0 when the backend cannot tell.
    """

    name: str
    kind: str  # "memory", "disk", "database"
    info: str = ""
    entries: int = 0
    size_bytes: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def get_info(self) -> str:
        return self.info

    def get_size(self) -> int:
        return self.size_bytes

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "kind": self.kind,
            "info": self.info,
            "entries": self.entries,
            "size_bytes": self.size_bytes,
            **self.extra,
        }


# =============================================================================
# CACHE POOL PROTOCOL
# =============================================================================

REQUIRED_MEMBERS: tuple[str, ...] = (
    "get_item",
    "get_items",
    "get_items_by_tags",
    "get_all_items",
    "has_item",
    "save",
    "save_multiple",
    "save_deferred",
    "commit",
    "delete_item",
    "delete_items",
    "clear",
    "get_stats",
    "get_io",
    "get_driver_name",
    "get_config",
    "get_event_manager",
    "detach_all_items",
)


@runtime_checkable
class CachePoolProtocol(Protocol):
    """Capability interface consumed by the contract verifier.

    Usage with isinstance checks:
        if isinstance(pool, CachePoolProtocol):
            verifier.run_crud_tests(pool)
    """

    @abstractmethod
    def get_item(self, key: str) -> CacheItem:
        """Return the item for ``key``; a miss still returns an item with ``is_hit()`` False."""
        ...

    @abstractmethod
    def get_items(self, keys: Iterable[str]) -> dict[str, CacheItem]:
        """Return items keyed by their cache key, misses included."""
        ...

    @abstractmethod
    def get_items_by_tags(self, tags: Iterable[str], strategy: TagStrategy = TagStrategy.ONE) -> dict[str, CacheItem]:
        """Return hit items matching ``tags`` under ``strategy``, keyed by cache key."""
        ...

    @abstractmethod
    def get_all_items(self, pattern: str = "") -> dict[str, CacheItem]:
        """Return every live item, optionally narrowed by a glob ``pattern``.

        Raises:
            InvalidArgumentError: when the driver cannot match patterns.
        """
        ...

    @abstractmethod
    def has_item(self, key: str) -> bool: ...

    @abstractmethod
    def save(self, item: CacheItem) -> bool: ...

    @abstractmethod
    def save_multiple(self, *items: CacheItem) -> bool: ...

    @abstractmethod
    def save_deferred(self, item: CacheItem) -> bool:
        """Stage ``item``; it is only guaranteed durable after ``commit()``."""
        ...

    @abstractmethod
    def commit(self) -> bool: ...

    @abstractmethod
    def delete_item(self, key: str) -> bool: ...

    @abstractmethod
    def delete_items(self, keys: Iterable[str]) -> bool: ...

    @abstractmethod
    def clear(self) -> bool: ...

    @abstractmethod
    def get_stats(self) -> CacheStats: ...

    @abstractmethod
    def get_io(self) -> DriverIO: ...

    @abstractmethod
    def get_driver_name(self) -> str: ...

    @abstractmethod
    def get_config(self) -> "PoolConfig": ...

    @abstractmethod
    def get_event_manager(self) -> EventManager: ...

    @abstractmethod
    def detach_all_items(self) -> None:
        """Forget every item instance the pool handed out."""
        ...


def missing_members(candidate: Any) -> list[str]:
    """Names of capability members ``candidate`` does not expose as callables."""
    return [name for name in REQUIRED_MEMBERS if not callable(getattr(candidate, name, None))]


__all__ = [
    "REQUIRED_MEMBERS",
    "CachePoolProtocol",
    "CacheStats",
    "DriverIO",
    "missing_members",
]
