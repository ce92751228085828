import sys
from pathlib import Path

# Add project root to Python path to allow running script directly
sys.path.append(str(Path(__file__).parent.parent))

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from poolprobe.caching.base_pool import TAG_PREFIX, AbstractCachePool, validate_key
from poolprobe.caching.drivers import DRIVERS, DiskPool, MemoryPool, SqlitePool, get_pool
from poolprobe.caching.events import Event
from poolprobe.config.config_schema import ConfigurationError, DiskConfig, MemoryConfig, SqliteConfig
from poolprobe.core.exceptions import (
    DriverCheckError,
    DriverConnectError,
    DriverNotFoundError,
    InvalidArgumentError,
    LogicError,
)
from poolprobe.testing.test_framework import TestSuite, suppress_logging
from poolprobe.testing.test_utilities import create_standard_test_runner, run_suite, temp_directory


@contextmanager
def _open_pools() -> Iterator[list[AbstractCachePool]]:
    """One pool per reference driver, static item caching off."""
    with temp_directory() as tmp:
        pools: list[AbstractCachePool] = [
            MemoryPool(MemoryConfig(use_static_item_caching=False)),
            DiskPool(DiskConfig(path=tmp / "disk", use_static_item_caching=False)),
            SqlitePool(SqliteConfig(use_static_item_caching=False)),
        ]
        try:
            yield pools
        finally:
            for pool in pools:
                pool.close()


def _for_each_pool(check: Callable[[AbstractCachePool], None]) -> None:
    with _open_pools() as pools:
        for pool in pools:
            try:
                check(pool)
            except AssertionError as e:
                raise AssertionError(f"{pool.get_driver_name()}: {e}") from e


def _raises(exc_type: type[BaseException], func: Callable[[], object]) -> BaseException:
    try:
        func()
    except exc_type as e:
        return e
    raise AssertionError(f"{exc_type.__name__} not raised")


def drivers_module_tests() -> bool:
    """Run tests for the reference pool drivers."""
    with suppress_logging():
        suite = TestSuite("Pool Drivers", __name__)

        def test_registry():
            assert set(DRIVERS) == {"Memory", "Disk", "Sqlite"}
            pool = get_pool("Memory")
            assert isinstance(pool, MemoryPool)
            error = _raises(DriverNotFoundError, lambda: get_pool("Redis"))
            assert isinstance(error, DriverCheckError)
            assert error.available_drivers == ["Memory", "Disk", "Sqlite"]

        def test_save_and_read():
            def check(pool):
                assert not pool.get_item("alpha").is_hit()
                assert pool.save(pool.get_item("alpha").set({"n": [1, 2]}))
                item = pool.get_item("alpha")
                assert item.is_hit()
                assert item.get() == {"n": [1, 2]}
                assert pool.has_item("alpha")
                assert 890 < item.get_ttl() <= 900

            _for_each_pool(check)

        def test_deferred_commit():
            def check(pool):
                assert pool.save_deferred(pool.get_item("later").set("v"))
                assert not pool.get_item("later").is_hit()
                assert pool.commit()
                assert pool.get_item("later").get() == "v"
                assert pool.commit()

            _for_each_pool(check)

        def test_delete_and_clear():
            def check(pool):
                pool.save_multiple(pool.get_item("one").set(1), pool.get_item("two").set(2))
                assert pool.delete_item("one")
                assert pool.delete_item("one")
                assert not pool.has_item("one")
                assert pool.has_item("two")
                assert pool.clear()
                assert pool.clear()
                assert not pool.has_item("two")

            _for_each_pool(check)

        def test_expired_record_is_a_miss():
            def check(pool):
                record = {"key": "stale", "value": 1, "tags": [], "expiration": time.time() - 10}
                pool._driver_write("stale", record)
                assert not pool.get_item("stale").is_hit()
                assert pool._driver_read("stale") is None

            _for_each_pool(check)

        def test_get_all_items_skips_tag_records():
            def check(pool):
                pool.clear()
                pool.save(pool.get_item("tagged").set("x").add_tag("t"))
                assert pool._driver_read(TAG_PREFIX + "t") is not None
                assert list(pool.get_all_items()) == ["tagged"]

            _for_each_pool(check)

        def test_io_counters():
            pool = MemoryPool(MemoryConfig(use_static_item_caching=False))
            pool.get_item("k")
            pool.save(pool.get_item("k").set(1))
            pool.get_item("k")
            io = pool.get_io()
            assert (io.get_read_hit(), io.get_read_miss(), io.get_write_hit()) == (1, 2, 1)
            io.reset()
            assert io.get_read_miss() == 0

        def test_key_validation():
            assert validate_key("plain-key.1") == "plain-key.1"
            pool = MemoryPool()
            for bad in ("", "a/b", "a:b", "{x}", TAG_PREFIX + "x"):
                _raises(InvalidArgumentError, lambda bad=bad: pool.get_item(bad))
            _raises(InvalidArgumentError, lambda: pool.save("not an item"))

        def test_static_item_caching():
            pool = MemoryPool(MemoryConfig(use_static_item_caching=True))
            first = pool.get_item("same")
            assert pool.get_item("same") is first
            pool.detach_all_items()
            assert pool.get_item("same") is not first

            uncached = MemoryPool(MemoryConfig(use_static_item_caching=False))
            assert uncached.get_item("same") is not uncached.get_item("same")

        def test_values_are_copied():
            pool = MemoryPool(MemoryConfig(use_static_item_caching=False))
            value = ["a"]
            pool.save(pool.get_item("list").set(value))
            value.append("b")
            assert pool.get_item("list").get() == ["a"]

        def test_append_and_prepend():
            pool = MemoryPool(MemoryConfig(use_static_item_caching=False))
            item = pool.get_item("text").set("mid")
            item.append("_end").prepend("start_")
            assert item.get() == "start_mid_end"
            _raises(LogicError, lambda: pool.get_item("number").set(5).append(1))

        def test_item_expiration_and_tags():
            pool = MemoryPool(MemoryConfig(use_static_item_caching=False))
            deadline = datetime.now(timezone.utc) + timedelta(hours=1)
            item = pool.get_item("dated").set(1).expires_at(deadline).add_tags(["a", "b", "c"])
            assert item.get_expiration_date() == deadline
            assert 3590 < item.get_ttl() <= 3600
            item.remove_tags(["a", "b", "zzz"])
            assert item.get_tags() == {"c"}
            assert item.get_removed_tags() == {"a", "b"}
            pool.save(item)
            assert item.get_removed_tags() == set()
            assert pool.get_item("dated").get_tags() == {"c"}
            past = pool.get_item("gone").set(1).expires_at(datetime.now(timezone.utc) - timedelta(seconds=5))
            assert past.is_expired()
            assert pool.save(past)
            assert not pool.has_item("gone")
            _raises(InvalidArgumentError, lambda: pool.get_item("neg").expires_after(-1))

        def test_detailed_dates():
            pool = MemoryPool(MemoryConfig(item_detailed_date=True, use_static_item_caching=False))
            pool.save(pool.get_item("dated").set(1))
            item = pool.get_item("dated")
            assert item.get_creation_date() is not None
            assert item.get_modification_date() is not None
            assert MemoryPool().get_item("plain").get_creation_date() is None

        def test_events_dispatched():
            pool = MemoryPool(MemoryConfig(use_static_item_caching=False))
            seen: list[str] = []
            pool.get_event_manager().on_every_event(lambda name, *args: seen.append(name))
            pool.save(pool.get_item("evt").set(1))
            pool.delete_item("evt")
            pool.clear()
            assert seen == [
                Event.CACHE_GET_ITEM.value,
                Event.CACHE_SAVE_ITEM.value,
                Event.CACHE_DELETE_ITEM.value,
                Event.CACHE_CLEAR_ITEM.value,
            ]

        def test_stats():
            def check(pool):
                pool.clear()
                pool.save(pool.get_item("s").set("payload"))
                stats = pool.get_stats()
                assert stats.name == pool.get_driver_name()
                assert stats.entries >= 1
                assert stats.get_info()
                assert stats.to_dict()["kind"] == stats.kind

            _for_each_pool(check)

        def test_sqlite_rejects_pattern():
            pool = SqlitePool()
            try:
                pool.save(pool.get_item("k1").set(1))
                error = _raises(InvalidArgumentError, lambda: pool.get_all_items("k*"))
                assert error.argument == "pattern"
                assert list(pool.get_all_items()) == ["k1"]
            finally:
                pool.close()

        def test_sqlite_bad_url():
            error = _raises(DriverCheckError, lambda: SqlitePool(SqliteConfig(url="nosuchdialect://host/db")))
            assert error.driver_name == "Sqlite"
            _raises(DriverCheckError, lambda: SqlitePool(SqliteConfig(url="not a url")))
            _raises(DriverCheckError, lambda: SqlitePool(MemoryConfig()))

        def test_disk_unavailable():
            with temp_directory() as tmp:
                with patch("poolprobe.caching.drivers.disk.Cache", side_effect=OSError("read-only")):
                    error = _raises(DriverConnectError, lambda: DiskPool(DiskConfig(path=tmp)))
                assert error.endpoint == str(tmp)
                blocker = tmp / "file"
                blocker.write_text("x")
                _raises(DriverCheckError, lambda: DiskPool(DiskConfig(path=blocker / "sub")))

        def test_invalid_config_rejected():
            with temp_directory() as tmp:
                _raises(ConfigurationError, lambda: DiskPool(DiskConfig(path=tmp, eviction_policy="random")))
            _raises(ConfigurationError, lambda: MemoryPool(MemoryConfig(default_ttl=0)))

        def test_closed_disk_pool():
            with temp_directory() as tmp:
                pool = DiskPool(DiskConfig(path=tmp))
                pool.close()
                _raises(DriverConnectError, lambda: pool.get_item("k"))

        tests = [
            ("Driver registry", test_registry, "Known names resolve, unknown names are a missing requirement"),
            ("Save and read", test_save_and_read, "Round trip through every driver"),
            ("Deferred commit", test_deferred_commit, "Staged items become visible after commit"),
            ("Delete and clear", test_delete_and_clear, "Both are idempotent"),
            ("Expired records", test_expired_record_is_a_miss, "Stale records are misses and get removed"),
            ("Bulk retrieval", test_get_all_items_skips_tag_records, "Tag index records never surface"),
            ("I/O counters", test_io_counters, "Read hits, misses and writes are counted"),
            ("Key validation", test_key_validation, "Empty, reserved and prefixed keys are rejected"),
            ("Static item caching", test_static_item_caching, "Same instance until detached"),
            ("Value isolation", test_values_are_copied, "Stored values do not alias caller objects"),
            ("Append and prepend", test_append_and_prepend, "String values grow, numbers refuse"),
            ("Item expiration and tags", test_item_expiration_and_tags, "Absolute expiry, removed tags, expired saves"),
            ("Detailed dates", test_detailed_dates, "Creation and modification dates are kept when enabled"),
            ("Events", test_events_dispatched, "Pool operations dispatch their events in order"),
            ("Driver stats", test_stats, "Every driver reports entries and info"),
            ("Sqlite pattern", test_sqlite_rejects_pattern, "Pattern lookup is an invalid argument"),
            ("Sqlite bad URL", test_sqlite_bad_url, "Unknown dialects and bad URLs fail the driver check"),
            ("Disk unavailable", test_disk_unavailable, "Open failures and unwritable paths"),
            ("Invalid config", test_invalid_config_rejected, "Pools validate their config on construction"),
            ("Closed disk pool", test_closed_disk_pool, "Operations after close report a connect error"),
        ]
        return run_suite(suite, tests)


run_comprehensive_tests = create_standard_test_runner(drivers_module_tests)


def test_drivers_module():
    assert drivers_module_tests()


if __name__ == "__main__":
    sys.exit(0 if drivers_module_tests() else 1)
