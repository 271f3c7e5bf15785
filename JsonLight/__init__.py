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
from .config import Config, resolve
from .errors import (
    BusyError, CreateError, FlushError, InstantiationError, JsonLightError,
    NotOpenError, ParseError, ReadError
)
from .system import Light
from .MasterLight import MasterLight
from .flash import flash
