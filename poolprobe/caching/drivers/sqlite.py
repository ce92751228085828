#!/usr/bin/env python3
"""
caching/drivers/sqlite.py - SQLAlchemy-backed pool

Records are pickled into a single table through SQLAlchemy Core. SQLite is
the default backend, but any SQLAlchemy URL with an installed DB-API module
works. Key enumeration by glob pattern is not offered by this driver.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import Column, Float, MetaData, PickleType, String, Table, create_engine, delete, func, insert, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from poolprobe.caching.base_pool import AbstractCachePool, Record
from poolprobe.caching.pool_protocol import CacheStats
from poolprobe.config.config_schema import PoolConfig, SqliteConfig
from poolprobe.core.exceptions import DriverCheckError, DriverConnectError, DriverIOError

logger = logging.getLogger(__name__)


class SqlitePool(AbstractCachePool):
    driver_name = "Sqlite"
    supports_pattern = False

    def __init__(self, config: Optional[PoolConfig] = None) -> None:
        self._engine: Optional[Engine] = None
        self._table: Optional[Table] = None
        super().__init__(config)

    @classmethod
    def default_config(cls) -> PoolConfig:
        return SqliteConfig()

    @property
    def sqlite_config(self) -> SqliteConfig:
        return self._config  # type: ignore[return-value]

    # === CONNECTION ===

    def _engine_options(self) -> dict[str, Any]:
        config = self.sqlite_config
        url = make_url(config.url)
        if url.get_backend_name() != "sqlite":
            return {"connect_args": {"connect_timeout": config.connect_timeout}, "pool_pre_ping": True}
        options: dict[str, Any] = {"connect_args": {"timeout": config.connect_timeout, "check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # A single shared connection keeps an in-memory database alive.
            options["poolclass"] = StaticPool
        return options

    def _driver_check(self) -> None:
        self._require(isinstance(self._config, SqliteConfig), "a SqliteConfig instance")
        config = self.sqlite_config
        try:
            self._engine = create_engine(config.url, **self._engine_options())
        except (NoSuchModuleError, ImportError) as e:
            raise DriverCheckError(
                f"No SQLAlchemy dialect or DB-API module available for {config.url!r}: {e}",
                driver_name=self.driver_name,
                missing_requirement="database driver module",
            ) from e
        except ArgumentError as e:
            raise DriverCheckError(
                f"Invalid database URL {config.url!r}: {e}",
                driver_name=self.driver_name,
                missing_requirement="a valid SQLAlchemy URL",
            ) from e

        self._table = Table(
            config.table_name,
            MetaData(),
            Column("key", String(255), primary_key=True),
            Column("record", PickleType, nullable=False),
            Column("expiration", Float, nullable=False, index=True),
        )

    def _driver_connect(self) -> None:
        try:
            self.table.metadata.create_all(self.engine)
        except OperationalError as e:
            raise DriverConnectError(
                f"Could not connect to {self.engine.url!r}: {e}",
                driver_name=self.driver_name,
                endpoint=self.engine.url.render_as_string(hide_password=True),
            ) from e
        logger.debug(f"SQL pool table {self.table.name!r} ready on {self.engine.url.get_backend_name()}")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DriverConnectError("Database engine is disposed", driver_name=self.driver_name)
        return self._engine

    @property
    def table(self) -> Table:
        if self._table is None:
            raise DriverConnectError("Pool table is not defined", driver_name=self.driver_name)
        return self._table

    # === STORAGE PRIMITIVES ===

    def _driver_read(self, key: str) -> Optional[Record]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(self.table.c.record).where(self.table.c.key == key)).first()
        except SQLAlchemyError as e:
            raise DriverIOError(f"Could not read {key!r}: {e}", operation="read") from e
        return row[0] if row is not None else None

    def _driver_write(self, key: str, record: Record) -> bool:
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(self.table).where(self.table.c.key == key))
                conn.execute(
                    insert(self.table).values(key=key, record=record, expiration=float(record["expiration"]))
                )
        except SQLAlchemyError as e:
            raise DriverIOError(f"Could not write {key!r}: {e}", operation="write") from e
        return True

    def _driver_delete(self, key: str) -> bool:
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(self.table).where(self.table.c.key == key))
        except SQLAlchemyError as e:
            raise DriverIOError(f"Could not delete {key!r}: {e}", operation="delete") from e
        return True

    def _driver_clear(self) -> bool:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(self.table))
        except SQLAlchemyError as e:
            raise DriverIOError(f"Could not clear table {self.table.name!r}: {e}", operation="clear") from e
        logger.debug(f"Cleared {result.rowcount} rows from {self.table.name!r}")
        return True

    def _driver_keys(self) -> list[str]:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(select(self.table.c.key)).scalars())
        except SQLAlchemyError as e:
            raise DriverIOError(f"Could not list keys: {e}", operation="keys") from e

    def _driver_stats(self) -> CacheStats:
        with self.engine.connect() as conn:
            entries = conn.execute(select(func.count()).select_from(self.table)).scalar_one()
            size = conn.execute(select(func.sum(func.length(self.table.c.record)))).scalar()
        backend = self.engine.url.get_backend_name()
        return CacheStats(
            name=self.driver_name,
            kind="database",
            info=f"{backend} table {self.table.name!r} holds {entries} rows",
            entries=int(entries),
            size_bytes=int(size or 0),
            extra={"backend": backend},
        )

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
