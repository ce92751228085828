#!/usr/bin/env python3
"""
caching/item.py - Cache items and tag queries

``CacheItem`` is the object a pool hands out for a key: a value, an expiration,
a set of tags and a hit flag. ``TagQuery`` holds the matching rules used by
tag-based retrieval.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from poolprobe.core.exceptions import InvalidArgumentError, LogicError


class TagStrategy(Enum):
    """Matching rule applied between a query's tags and an item's tags."""

    ONE = "one"  # at least one queried tag on the item
    ALL = "all"  # every queried tag on the item
    ONLY = "only"  # the item carries the queried tags and nothing else


@dataclass(frozen=True)
class TagQuery:
    """Tags plus the strategy used to match them against an item."""

    tags: tuple[str, ...]
    strategy: TagStrategy = TagStrategy.ONE

    def __post_init__(self) -> None:
        if not self.tags:
            raise InvalidArgumentError("A tag query needs at least one tag", argument="tags")
        if not isinstance(self.strategy, TagStrategy):
            raise InvalidArgumentError(f"Unknown tag strategy: {self.strategy!r}", argument="strategy")

    @classmethod
    def of(cls, tags: Iterable[str], strategy: TagStrategy = TagStrategy.ONE) -> "TagQuery":
        return cls(tuple(tags), strategy)

    @property
    def tag_set(self) -> frozenset[str]:
        return frozenset(self.tags)

    def matches(self, item_tags: Iterable[str]) -> bool:
        """Whether an item carrying ``item_tags`` satisfies this query."""
        item_set = frozenset(item_tags)
        if self.strategy is TagStrategy.ALL:
            return self.tag_set <= item_set
        if self.strategy is TagStrategy.ONLY:
            return item_set == self.tag_set
        return bool(self.tag_set & item_set)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheItem:
    """A key/value entry handed out by a pool."""

    def __init__(self, key: str, default_ttl: int, detailed_date: bool = False) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidArgumentError(f"Invalid cache key: {key!r}", argument="key")
        self._key = key
        self._value: Any = None
        self._hit = False
        self._tags: set[str] = set()
        self._removed_tags: set[str] = set()
        self._detailed_date = detailed_date
        self._expiration = _utcnow() + timedelta(seconds=default_ttl)
        self._creation: Optional[datetime] = _utcnow() if detailed_date else None
        self._modification: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"CacheItem(key={self._key!r}, hit={self._hit}, tags={sorted(self._tags)})"

    @property
    def key(self) -> str:
        return self._key

    def get_key(self) -> str:
        return self._key

    # --- Value ---

    def get(self) -> Any:
        return self._value

    def set(self, value: Any) -> "CacheItem":
        self._value = value
        if self._detailed_date:
            self._modification = _utcnow()
        return self

    def append(self, data: Any) -> "CacheItem":
        """Append to a string or list value."""
        if isinstance(self._value, list):
            self._value.append(data)
        elif isinstance(self._value, str):
            self._value = self._value + str(data)
        else:
            raise LogicError(f"Cannot append to a value of type {type(self._value).__name__}")
        return self

    def prepend(self, data: Any) -> "CacheItem":
        """Prepend to a string or list value."""
        if isinstance(self._value, list):
            self._value.insert(0, data)
        elif isinstance(self._value, str):
            self._value = str(data) + self._value
        else:
            raise LogicError(f"Cannot prepend to a value of type {type(self._value).__name__}")
        return self

    # --- Hit state ---

    def is_hit(self) -> bool:
        return self._hit

    # --- Expiration ---

    def get_expiration_date(self) -> datetime:
        return self._expiration

    def get_ttl(self) -> float:
        """Seconds left before expiration, never negative."""
        return max(0.0, (self._expiration - _utcnow()).total_seconds())

    def is_expired(self) -> bool:
        return self._expiration <= _utcnow()

    def expires_at(self, expiration: datetime) -> "CacheItem":
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        self._expiration = expiration
        return self

    def expires_after(self, seconds: int | float | timedelta) -> "CacheItem":
        if isinstance(seconds, timedelta):
            seconds = seconds.total_seconds()
        if seconds < 0:
            raise InvalidArgumentError(f"Negative expiration: {seconds}", argument="seconds")
        self._expiration = _utcnow() + timedelta(seconds=seconds)
        return self

    def get_creation_date(self) -> Optional[datetime]:
        return self._creation

    def get_modification_date(self) -> Optional[datetime]:
        return self._modification

    # --- Tags ---

    def get_tags(self) -> set[str]:
        return set(self._tags)

    def get_removed_tags(self) -> set[str]:
        return set(self._removed_tags)

    def add_tag(self, tag: str) -> "CacheItem":
        if not isinstance(tag, str) or not tag:
            raise InvalidArgumentError(f"Invalid tag: {tag!r}", argument="tag")
        self._tags.add(tag)
        self._removed_tags.discard(tag)
        return self

    def add_tags(self, tags: Iterable[str]) -> "CacheItem":
        for tag in tags:
            self.add_tag(tag)
        return self

    def remove_tag(self, tag: str) -> "CacheItem":
        if tag in self._tags:
            self._tags.discard(tag)
            self._removed_tags.add(tag)
        return self

    def remove_tags(self, tags: Iterable[str]) -> "CacheItem":
        for tag in tags:
            self.remove_tag(tag)
        return self

    # --- Persistence helpers used by pools ---

    def to_record(self) -> dict[str, Any]:
        """Serializable form written by drivers."""
        record: dict[str, Any] = {
            "key": self._key,
            "value": self._value,
            "tags": sorted(self._tags),
            "expiration": self._expiration.timestamp(),
        }
        if self._detailed_date:
            record["creation"] = (self._creation or _utcnow()).timestamp()
            record["modification"] = (self._modification or _utcnow()).timestamp()
        return record

    def load_record(self, record: dict[str, Any]) -> "CacheItem":
        """Populate this item from a stored record and mark it as a hit."""
        self._value = record.get("value")
        self._tags = set(record.get("tags", ()))
        self._removed_tags.clear()
        self._expiration = datetime.fromtimestamp(float(record["expiration"]), tz=timezone.utc)
        if self._detailed_date:
            creation = record.get("creation")
            modification = record.get("modification")
            self._creation = datetime.fromtimestamp(creation, tz=timezone.utc) if creation else None
            self._modification = datetime.fromtimestamp(modification, tz=timezone.utc) if modification else None
        self._hit = True
        return self

    def mark_saved(self) -> None:
        self._removed_tags.clear()
        self._hit = True


def record_is_expired(record: dict[str, Any], now: Optional[float] = None) -> bool:
    return float(record.get("expiration", 0)) <= (time.time() if now is None else now)


__all__ = ["CacheItem", "TagQuery", "TagStrategy", "record_is_expired"]
