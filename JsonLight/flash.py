"""
JsonLight - Async JSON Document Store with Idle Eviction
--------------------------------------------------------

Author: Light_dev
Version: 0.1.0
License: Apache License 2.0 (see LICENSE file)

Description:
    An embedded key-value stack featuring:
    - Flash: async read/write API over named JSON databases.
    - MasterLight: registry that loads, flushes and evicts databases.
    - Light: single-file JSON storage with atomic replace-on-write.

    Each database lives in RAM while active and as <name>.db.json on disk.

Usage:
    from JsonLight import flash
    db = flash(location="./storage", idle_timeout_ms=60000)
    await db.write_data("app_data", "user_1", {"data": "info"})
    print(await db.read_data("app_data", "user_1"))
"""
from typing import Any, List, Mapping, Optional, Union

from .config import Config, resolve
from .logger import get_logger
from .MasterLight import MasterLight
from .system import Light
from .throttle import WriteThrottle

logger = get_logger(__name__)


class flash:
    __slots__ = ("config", "db", "throttle")

    def __init__(self, config: Union[None, Config, Mapping[str, Any]] = None,
                 storage: Optional[Light] = None, **options):
        """
        config: Config, or a mapping of options (flat or under "db").
        storage: Alternative storage backend, defaults to files in `location`.
        options: location, idle_timeout_ms, flush_interval_ms overrides.
        """
        self.config = resolve(config, **options)

        # One registry per store, shared by the throttle and the idle timers
        self.db = MasterLight(self.config, storage=storage)
        self.throttle = WriteThrottle(self.db, self.config.flush_interval)

    async def __aenter__(self): return self
    async def __aexit__(self, *args): await self.close()

    # ==========================
    # CORE API
    # ==========================
    async def write_data(self, database: str, key: str, value: Any):
        """
        Stores `value` under `key` and asks for the database to be written.
        Raises BusyError when a write of this database is still in flight;
        the value is kept in memory and goes out with the next flush.
        """
        await self.db.ensure_open(database)
        self.db.set(database, key, value)
        await self.throttle.request_flush(database)

    async def read_data(self, database: str, key: str, default: Any = None) -> Any:
        """Returns the value under `key`, or `default` if it is missing or falsy."""
        await self.db.ensure_open(database)
        return self.db.get(database, key, default)

    async def check(self, database: str, key: str) -> bool:
        """True if `key` is stored, whatever its value."""
        await self.db.ensure_open(database)
        return self.db.has(database, key)

    async def delete_data(self, database: str, key: str) -> bool:
        """Removes `key`. Returns False (and writes nothing) if it was absent."""
        await self.db.ensure_open(database)
        if not self.db.delete(database, key):
            return False
        await self.throttle.request_flush(database)
        return True

    # ==========================
    # MANAGEMENT
    # ==========================
    async def close_database(self, database: str):
        """Flushes and unloads one database. It reopens on next access."""
        await self.db.close(database)

    async def close(self):
        """Flushes and unloads everything and stops all timers."""
        logger.info("Closing store at %s", self.config.location)
        self.throttle.cancel_all()
        await self.db.close_all()

    async def list_databases(self) -> List[str]:
        return await self.db.list_databases()

    def is_open(self, database: str) -> bool:
        return self.db.is_open(database)
