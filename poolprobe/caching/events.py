#!/usr/bin/env python3
"""
caching/events.py - Pool event manager

Observers subscribe to pool events and get a ``SubscriptionToken`` back; the
token is the only handle needed to unsubscribe. Events that let observers
replace a value pass it wrapped in an ``EventReferenceParameter``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Event(Enum):
    """Events dispatched by pools."""

    CACHE_GET_ITEM = "CacheGetItem"
    CACHE_SAVE_ITEM = "CacheSaveItem"
    CACHE_SAVE_DEFERRED_ITEM = "CacheSaveDeferredItem"
    CACHE_COMMIT_ITEM = "CacheCommitItem"
    CACHE_DELETE_ITEM = "CacheDeleteItem"
    CACHE_CLEAR_ITEM = "CacheClearItem"
    CACHE_GET_ALL_ITEMS = "CacheGetAllItems"
    CACHE_DRIVER_CHECKED = "CacheDriverChecked"


class EventReferenceParameter:
    """A value listeners may read and replace before the dispatcher uses it."""

    def __init__(self, value: Any, allow_type_change: bool = False) -> None:
        self._value = value
        self._allow_type_change = allow_type_change

    def get_parameter_value(self) -> Any:
        return self._value

    def set_parameter_value(self, value: Any) -> None:
        if not self._allow_type_change and type(value) is not type(self._value):
            if not (callable(value) and callable(self._value)):
                raise TypeError(
                    f"Cannot replace a {type(self._value).__name__} parameter with a {type(value).__name__}"
                )
        self._value = value

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._value(*args, **kwargs)


@dataclass(frozen=True)
class SubscriptionToken:
    """Handle returned by a subscription."""

    id: int
    event: Optional[Event]


Listener = Callable[..., Any]
EveryEventListener = Callable[..., Any]


class EventManager:
    """Per-pool registry of event observers."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._listeners: dict[Event, dict[int, Listener]] = {}
        self._every_event: dict[int, EveryEventListener] = {}

    def on(self, event: Event, listener: Listener) -> SubscriptionToken:
        """Subscribe ``listener`` to ``event``."""
        token = SubscriptionToken(next(self._ids), event)
        self._listeners.setdefault(event, {})[token.id] = listener
        logger.debug(f"Subscribed listener #{token.id} to {event.value}")
        return token

    def on_every_event(self, listener: EveryEventListener) -> SubscriptionToken:
        """Subscribe ``listener`` to all events; it receives the event name first."""
        token = SubscriptionToken(next(self._ids), None)
        self._every_event[token.id] = listener
        return token

    def off(self, token: SubscriptionToken) -> bool:
        """Unsubscribe; returns False when the token was not active."""
        if token.event is None:
            return self._every_event.pop(token.id, None) is not None
        return self._listeners.get(token.event, {}).pop(token.id, None) is not None

    def listener_count(self, event: Optional[Event] = None) -> int:
        if event is None:
            return sum(len(listeners) for listeners in self._listeners.values()) + len(self._every_event)
        return len(self._listeners.get(event, {}))

    def dispatch(self, event: Event, *args: Any) -> None:
        for listener in list(self._every_event.values()):
            listener(event.value, *args)
        for listener in list(self._listeners.get(event, {}).values()):
            listener(*args)


__all__ = ["Event", "EventManager", "EventReferenceParameter", "SubscriptionToken"]
