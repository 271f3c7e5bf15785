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
import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from .config import Config
from .errors import CreateError, FlushError, InstantiationError, NotOpenError, ParseError, ReadError
from .evictor import IdleEvictor
from .logger import get_logger
from .system import Light

logger = get_logger(__name__)

EMPTY_DOCUMENT = b"{}"


class MasterLight:
    """
    Registry of open databases.

    Holds the in-memory documents and one asyncio.Lock per name. Loading,
    flushing and closing a database all take that lock, so a first open,
    a flush and an idle eviction of the same name never overlap.
    """

    __slots__ = (
        "config", "storage", "evictor", "_documents", "_locks", "_lock_users",
        "_ready_lock", "_ready", "_ready_error"
    )

    def __init__(self, config: Config, storage: Optional[Light] = None):
        self.config = config
        self.storage = storage or Light(config.location)
        self.evictor = IdleEvictor(config.idle_timeout, self._evict)

        # { "name": { "key": value } }
        self._documents: Dict[str, Dict[str, Any]] = {}
        # Locks live while a document is open or someone holds or awaits them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

        self._ready_lock = asyncio.Lock()
        self._ready: Optional[bool] = None
        self._ready_error: Optional[BaseException] = None

    @asynccontextmanager
    async def _locked(self, name: str):
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        self._lock_users[name] = self._lock_users.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                if name not in self._documents:
                    del self._locks[name]

    def _document(self, name: str) -> Dict[str, Any]:
        try:
            return self._documents[name]
        except KeyError:
            raise NotOpenError(name) from None

    # ===============================
    # Lifecycle
    # ===============================
    async def ready(self):
        """Creates the database directory once. A failure is permanent."""
        if self._ready is None:
            async with self._ready_lock:
                if self._ready is None:
                    try:
                        await self.storage.ensure_directory()
                    except OSError as exc:
                        logger.error("Database location %s couldn't be created: %s", self.storage.location, exc)
                        self._ready_error = exc
                        self._ready = False
                    else:
                        logger.info("Database location ready: %s", self.storage.location)
                        self._ready = True

        if not self._ready:
            raise InstantiationError(self.storage.location) from self._ready_error

    async def ensure_open(self, name: str):
        await self.ready()
        path = self.storage.path_for(name)

        # Any access pushes the idle deadline back
        self.evictor.touch(name)

        async with self._locked(name):
            if name in self._documents:
                return
            self._documents[name] = await self._load(name, path)

    async def _load(self, name, path) -> Dict[str, Any]:
        if not await self.storage.exists(path):
            try:
                await self.storage.write_file(path, EMPTY_DOCUMENT)
            except OSError as exc:
                raise CreateError(name) from exc
            logger.debug("Created database %s at %s", name, path)

        try:
            raw = await self.storage.read_file(path)
        except OSError as exc:
            raise ReadError(name) from exc

        try:
            document = self.storage.deserialize(raw)
        except ValueError as exc:
            raise ParseError(name) from exc
        if not isinstance(document, dict):
            raise ParseError(name, "top level is not an object")

        logger.info("Loaded database %s (%d keys)", name, len(document))
        return document

    async def flush(self, name: str) -> bool:
        """Writes the whole document of `name`. False when it is not open."""
        async with self._locked(name):
            return await self._write(name)

    async def _write(self, name: str) -> bool:
        document = self._documents.get(name)
        if document is None:
            return False

        path = self.storage.path_for(name)
        try:
            data = self.storage.serialize(document)
            await self.storage.write_file(path, data)
        except (OSError, TypeError, ValueError, OverflowError) as exc:
            raise FlushError(name) from exc

        logger.debug("Flushed database %s (%d bytes)", name, len(data))
        return True

    async def close(self, name: str):
        """
        Flushes and unloads `name`. On FlushError the document stays in
        memory so the call can be retried.
        """
        await self._close(name, evicting=False)

    async def _close(self, name: str, evicting: bool):
        if not evicting:
            self.evictor.cancel(name)

        async with self._locked(name):
            # Touched again after the timer fired
            if evicting and self.evictor.armed(name):
                return
            if name not in self._documents:
                return

            try:
                await self._write(name)
            except FlushError:
                if evicting:
                    self._documents.pop(name, None)
                raise
            self._documents.pop(name, None)

        logger.info("Closed database %s", name)

    async def _evict(self, name: str):
        try:
            await self._close(name, evicting=True)
        except FlushError:
            # Nobody awaits an eviction, so this is the only report
            logger.exception("Idle eviction of %s dropped unflushed changes", name)

    async def close_all(self):
        """Stops the idle timers and closes every open database."""
        await self.evictor.shutdown()

        failures: List[FlushError] = []
        for name in list(self._documents):
            try:
                await self.close(name)
            except FlushError as exc:
                logger.error("Database %s couldn't be closed: %s", name, exc.__cause__)
                failures.append(exc)

        if failures:
            raise failures[0]

    # ===============================
    # Core Operations
    # ===============================
    def get(self, name: str, key: str, default: Any = None) -> Any:
        # A stored falsy value (0, "", False, None, [], {}) also yields `default`
        return self._document(name).get(key) or default

    def has(self, name: str, key: str) -> bool:
        return key in self._document(name)

    def set(self, name: str, key: str, value: Any):
        self._document(name)[key] = value

    def delete(self, name: str, key: str) -> bool:
        document = self._document(name)
        if key not in document:
            return False
        del document[key]
        return True

    # ===============================
    # Discovery
    # ===============================
    def is_open(self, name: str) -> bool:
        return name in self._documents

    def open_databases(self) -> List[str]:
        return list(self._documents)

    async def list_databases(self) -> List[str]:
        """Every database with a file on disk, open or not."""
        await self.ready()
        return await self.storage.list_names()
