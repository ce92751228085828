"""
Caching Package - Pool capability interface, item model and reference drivers.

- pool_protocol: CachePoolProtocol, DriverIO, CacheStats
- item: CacheItem, TagQuery, TagStrategy
- events: EventManager and the events pools dispatch
- base_pool: AbstractCachePool built on storage primitives
- drivers: Memory, Disk and Sqlite pools plus get_pool()
"""

from .events import Event, EventManager, EventReferenceParameter, SubscriptionToken
from .item import CacheItem, TagQuery, TagStrategy
from .pool_protocol import REQUIRED_MEMBERS, CachePoolProtocol, CacheStats, DriverIO, missing_members

__all__ = [
    "REQUIRED_MEMBERS",
    "CacheItem",
    "CachePoolProtocol",
    "CacheStats",
    "DriverIO",
    "Event",
    "EventManager",
    "EventReferenceParameter",
    "SubscriptionToken",
    "TagQuery",
    "TagStrategy",
    "missing_members",
]
