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
from typing import Awaitable, Callable, Dict, Optional, Set

from .logger import get_logger

logger = get_logger(__name__)


class IdleEvictor:
    """
    One timer slot per database name. Every touch replaces the slot;
    a timer that fires hands the name to `on_idle` as a new task.
    """

    __slots__ = ("timeout", "_on_idle", "_timers", "_tasks")

    def __init__(self, timeout: Optional[float], on_idle: Callable[[str], Awaitable[None]]):
        """
        timeout: Seconds of inactivity before eviction, None disables it.
        on_idle: Coroutine function run with the database name on expiry.
        """
        self.timeout = timeout
        self._on_idle = on_idle
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    def touch(self, name: str):
        self.cancel(name)
        if self.timeout is None:
            return
        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(self.timeout, self._fire, name)

    def cancel(self, name: str):
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def armed(self, name: str) -> bool:
        return name in self._timers

    def _fire(self, name: str):
        self._timers.pop(name, None)
        logger.debug("Idle timeout reached for %s", name)
        task = asyncio.get_running_loop().create_task(self._on_idle(name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def shutdown(self):
        """Cancel every timer and wait for evictions already under way."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
