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
from typing import TYPE_CHECKING, Dict, Set

from .errors import BusyError
from .logger import get_logger

if TYPE_CHECKING:
    from .MasterLight import MasterLight

logger = get_logger(__name__)


class WriteThrottle:
    """
    Gate in front of `MasterLight.flush`.

    A database that was flushed less than `interval` seconds ago is "in flight"
    and further requests fail with BusyError. The data is not lost: it stays
    in RAM and the next accepted flush writes the whole document.
    """

    __slots__ = ("registry", "interval", "_writing", "_releases")

    def __init__(self, registry: "MasterLight", interval: float = 0.0):
        self.registry = registry
        self.interval = interval
        self._writing: Set[str] = set()
        self._releases: Dict[str, asyncio.TimerHandle] = {}

    def in_flight(self, name: str) -> bool:
        return name in self._writing

    async def request_flush(self, name: str):
        if name in self._writing:
            logger.debug("Flush of %s refused, still in flight", name)
            raise BusyError(name)

        self._writing.add(name)
        if self.interval > 0:
            loop = asyncio.get_running_loop()
            self._releases[name] = loop.call_later(self.interval, self._release, name)
        else:
            self._writing.discard(name)

        await self.registry.flush(name)

    def _release(self, name: str):
        self._releases.pop(name, None)
        self._writing.discard(name)

    def cancel_all(self):
        for handle in self._releases.values():
            handle.cancel()
        self._releases.clear()
        self._writing.clear()
