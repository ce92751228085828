#!/usr/bin/env python3

"""
core/contract_verifier.py - Contract Verifier

Drives the fixed verification sequences against one pool at a time and records
every expectation through the session's assertion helpers.

``run_crud_tests`` covers the item life cycle: default TTL, save, the three
tag strategies (each probed with and without an unknown tag), deferred write
plus commit, deletion, clearing and batch deletion. A failure that makes the
following steps meaningless ends the sequence for that pool.

``run_get_all_items_tests`` covers bulk retrieval and proves the
``CACHE_GET_ALL_ITEMS`` extension point fires by wrapping its callback with a
``GetAllItemsProbe``.

Exceptions raised by the pool are not caught here; they escape to the session,
whose fault classifier records them.
"""

from __future__ import annotations

import logging
import math
import random
import secrets
from typing import Any, Callable, Optional

from poolprobe.caching.events import Event, EventReferenceParameter
from poolprobe.caching.item import CacheItem, TagStrategy
from poolprobe.caching.pool_protocol import CachePoolProtocol, missing_members
from poolprobe.core.exceptions import InvalidArgumentError, PoolContractError
from poolprobe.core.session import TestSession

logger = logging.getLogger(__name__)

UNKNOWN_TAG = "unknown_tag"
APPEND_SUFFIX = "_appended"
BULK_ITEMS: dict[str, str] = {"cache-test1": "test1", "cache-test2": "test2", "cache-test3": "test3"}
BULK_ITEM_TTL = 3600
BULK_PATTERN = "*test1*"


def _random_token(prefix: str) -> str:
    return f"{prefix}{secrets.token_hex(8)}_{random.randint(100, 999)}"


def _shuffled(text: str) -> str:
    return "".join(random.sample(text, len(text)))


class GetAllItemsProbe:
    """Observer for ``Event.CACHE_GET_ALL_ITEMS``.

    Replaces the fetch callback carried by the event with a wrapper that
    records each invocation before delegating to the original.
    """

    def __init__(self, on_invoke: Optional[Callable[[str], Any]] = None) -> None:
        self.invoked = False
        self.calls = 0
        self.patterns: list[str] = []
        self._on_invoke = on_invoke

    def __call__(self, pool: Any, reference: EventReferenceParameter) -> None:
        callback = reference.get_parameter_value()

        def observed(pattern: str = "") -> Any:
            self.invoked = True
            self.calls += 1
            self.patterns.append(pattern)
            if self._on_invoke is not None:
                self._on_invoke(pattern)
            return callback(pattern)

        reference.set_parameter_value(observed)


class ContractVerifier:
    """Runs the verification sequences and reports through a ``TestSession``."""

    def __init__(self, session: TestSession) -> None:
        self.session = session

    @staticmethod
    def ensure_pool(pool: Any) -> CachePoolProtocol:
        """Raise ``PoolContractError`` unless ``pool`` exposes the capability interface."""
        missing = missing_members(pool)
        if missing:
            raise PoolContractError(
                f"{type(pool).__name__} is missing pool members: {', '.join(missing)}",
                missing_members=missing,
                recovery_hint="Wrap the backend in an adapter implementing CachePoolProtocol",
            )
        return pool

    # === CRUD SEQUENCE ===

    def run_crud_tests(self, pool: CachePoolProtocol, pool_clear: bool = True) -> None:
        session = self.session
        self.ensure_pool(pool)
        session.print_info_text(f"Running CRUD tests on the following backend: {type(pool).__name__}")
        logger.debug(f"CRUD sequence starting on {pool.get_driver_name()} (clear={pool_clear})")

        if pool_clear:
            session.print_debug_text("Clearing backend before running test...")
            pool.clear()

        cache_key = _random_token("cache_key_")
        cache_key2 = _random_token("cache_key_")
        cache_value = f"cache_data_{random.randint(1000, 999999)}"
        cache_tag = _random_token("cache_tag_")
        cache_tag2 = _random_token("cache_tag_")

        cache_item = pool.get_item(cache_key)
        session.print_info_text(f"Using cache key: {cache_key}")

        default_ttl = pool.get_config().get_default_ttl()
        ttl = math.floor(cache_item.get_ttl())
        if default_ttl - 1 <= ttl <= default_ttl:
            session.assert_pass(f"The cache item TTL is within one second of the default TTL ({default_ttl}s).")
        else:
            session.assert_fail(f"The expected TTL of the cache item was ~{default_ttl}s, got {ttl}s")

        cache_item.set(cache_value).add_tags([cache_tag, cache_tag2])
        if pool.save(cache_item):
            session.assert_pass("The pool successfully saved an item.")
        else:
            session.assert_fail("The pool failed to save an item.")
            return
        del cache_item
        pool.detach_all_items()

        cache_item = self._check_tag_strategies(pool, cache_key, cache_value, cache_tag, cache_tag2)
        if cache_item is None:
            return

        session.print_info_text("Updating the cache item by appending some chars...")
        cache_item.append(APPEND_SUFFIX)
        cache_value += APPEND_SUFFIX
        pool.save_deferred(cache_item)
        session.print_info_text("Deferred item is being committed...")
        if pool.commit():
            session.assert_pass("The pool successfully committed deferred cache item.")
        else:
            session.assert_fail("The pool failed to commit deferred cache item.")
        pool.detach_all_items()
        del cache_item

        cache_item = pool.get_item(cache_key)
        if cache_item.get() == cache_value:
            session.assert_pass("The pool successfully retrieved the expected new value.")
        else:
            session.assert_fail("The pool failed to retrieve the expected new value.")
            return

        if pool_clear and not self._check_deletion(pool, cache_key, cache_key2, cache_value):
            return

        self._print_driver_stats(pool)

    def _check_tag_strategies(
        self, pool: CachePoolProtocol, cache_key: str, cache_value: str, cache_tag: str, cache_tag2: str
    ) -> Optional[CacheItem]:
        """Run the tag strategy probes; returns the item found by ONE, or None once a probe fails."""
        session = self.session
        probes: list[tuple[str, list[str], TagStrategy, bool]] = [
            (
                'Re-fetching item <green>by its tags</green> <red>and an unknown tag</red> (tag strategy "<yellow>ALL</yellow>")...',
                [cache_tag, cache_tag2, UNKNOWN_TAG],
                TagStrategy.ALL,
                False,
            ),
            (
                'Re-fetching item <green>by its tags</green> (tag strategy "<yellow>ALL</yellow>")...',
                [cache_tag, cache_tag2],
                TagStrategy.ALL,
                True,
            ),
            (
                'Re-fetching item <green>by its tags</green> <red>and an unknown tag</red> (tag strategy "<yellow>ONLY</yellow>")...',
                [cache_tag, cache_tag2, UNKNOWN_TAG],
                TagStrategy.ONLY,
                False,
            ),
            (
                'Re-fetching item <green>by its tags</green> (tag strategy "<yellow>ONLY</yellow>")...',
                [cache_tag, cache_tag2],
                TagStrategy.ONLY,
                True,
            ),
        ]
        for note, tags, strategy, expect_hit in probes:
            session.print_info_text(note)
            found = cache_key in pool.get_items_by_tags(tags, strategy)
            if expect_hit and found:
                session.assert_pass("The pool successfully retrieved the cache item.")
            elif expect_hit:
                session.assert_fail("The pool failed to retrieve the cache item.")
                return None
            elif not found:
                session.assert_pass("The pool expectedly failed to retrieve the cache item.")
            else:
                session.assert_fail("The pool unexpectedly retrieved the cache item.")
                return None
            pool.detach_all_items()

        session.print_info_text(
            'Re-fetching item <green>by one of its tags</green> <red>and an unknown tag</red> (tag strategy "<yellow>ONE</yellow>")...'
        )
        items = pool.get_items_by_tags([cache_tag, UNKNOWN_TAG], TagStrategy.ONE)
        item = items.get(cache_key)
        if item is not None and item.get_key() == cache_key:
            session.assert_pass("The pool successfully retrieved the cache item.")
        else:
            session.assert_fail("The pool failed to retrieve the cache item.")
            return None

        if item.get() == cache_value:
            session.assert_pass("The pool successfully retrieved the expected value.")
        else:
            session.assert_fail("The pool failed to retrieve the expected value.")
            return None
        return item

    def _check_deletion(self, pool: CachePoolProtocol, cache_key: str, cache_key2: str, cache_value: str) -> bool:
        session = self.session
        if pool.delete_item(cache_key) and not pool.get_item(cache_key).is_hit():
            session.assert_pass("The pool successfully deleted the cache item.")
        else:
            session.assert_fail("The pool failed to delete the cache item.")

        if pool.clear():
            session.assert_pass("The pool successfully cleared.")
        else:
            session.assert_fail("The pool failed to clear.")
        pool.detach_all_items()

        if not pool.get_item(cache_key).is_hit():
            session.assert_pass("The cache item does no longer exist in pool.")
        else:
            session.assert_fail("The cache item still exists in pool.")
            return False

        session.print_info_text("Testing deleting multiple keys at once.")
        cache_items = pool.get_items([cache_key, cache_key2])
        for cache_item in cache_items.values():
            cache_item.set(_shuffled(cache_value))
            pool.save(cache_item)
        pool.delete_items(list(cache_items))

        hits = [item.get_key() for item in pool.get_items([cache_key, cache_key2]).values() if item.is_hit()]
        if not hits:
            session.assert_pass("The cache items do no longer exist in pool.")
        else:
            session.assert_fail(f"The cache items {', '.join(hits)} still exist in pool.")
        return True

    def _print_driver_stats(self, pool: CachePoolProtocol) -> None:
        session = self.session
        io = pool.get_io()
        session.print_info_text(
            f"I/O stats: {io.get_read_hit()} HIT(S), {io.get_read_miss()} MISS, {io.get_write_hit()} WRITE(S)"
        )
        stats = pool.get_stats()
        session.print_info_text(f"<yellow>Driver info</yellow>: <magenta>{stats.get_info()}</magenta>")
        size = stats.get_size()
        if size:
            session.print_info_text(
                f"<yellow>Driver size</yellow> (approximative): <magenta>{round(size / 1024 ** 2, 3)} Mo</magenta>"
            )
        session.print_new_line()

    # === BULK RETRIEVAL SEQUENCE ===

    def run_get_all_items_tests(self, pool: CachePoolProtocol) -> GetAllItemsProbe:
        """Run the bulk retrieval sequence; returns the probe for inspection."""
        session = self.session
        self.ensure_pool(pool)
        driver_name = pool.get_driver_name()
        events = pool.get_event_manager()
        probe = GetAllItemsProbe(
            on_invoke=lambda _pattern: session.print_info_text(
                "The custom event Event.CACHE_GET_ALL_ITEMS has been called."
            )
        )
        token = events.on(Event.CACHE_GET_ALL_ITEMS, probe)
        try:
            session.print_note_text(
                f"<blue>Testing</blue> <red>{driver_name.upper()}</red> <blue>against get_all_items() method</blue>"
            )
            pool.clear()
            items = [pool.get_item(key).set(value).expires_after(BULK_ITEM_TTL) for key, value in BULK_ITEMS.items()]
            pool.save_multiple(*items)
            pool.detach_all_items()
            del items

            all_items = pool.get_all_items()
            if len(all_items) == len(BULK_ITEMS):
                session.assert_pass(f"get_all_items() returned {len(BULK_ITEMS)} cache items as expected.")
            else:
                session.assert_fail(f"get_all_items() unexpectedly returned {len(all_items)} cache items.")

            for key, item in all_items.items():
                if item.is_hit():
                    session.assert_pass(f"Item #{item.get_key()} is hit.")
                else:
                    session.assert_fail(f"Item #{item.get_key()} is not hit.")

                if key == item.get_key():
                    session.assert_pass(f"Cache item #{item.get_key()} object is identified by its cache key.")
                else:
                    session.assert_fail(f'Cache item #{item.get_key()} object is identified by "{key}".')

            if probe.invoked:
                session.assert_pass("The CACHE_GET_ALL_ITEMS event callback was invoked.")
            else:
                session.assert_fail("The CACHE_GET_ALL_ITEMS event callback was never invoked.")

            session.print_note_text("<blue>Testing get_all_items() method</blue> <yellow>(with pattern)</yellow>")
            try:
                matched = pool.get_all_items(BULK_PATTERN)
            except InvalidArgumentError as e:
                logger.debug(f"Pattern retrieval rejected by {driver_name}: {e}")
                session.assert_skip(f"Pattern argument unsupported by {driver_name} driver")
            else:
                if len(matched) == 1:
                    session.assert_pass("Found 1 item using the pattern argument")
                else:
                    session.assert_fail(f"Found {len(matched)} items using the pattern argument")
        finally:
            events.off(token)

        session.print_new_line()
        return probe


__all__ = ["ContractVerifier", "GetAllItemsProbe"]
