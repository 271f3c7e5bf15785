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
from typing import Optional


class JsonLightError(Exception):
    """Base class for every failure reported by the store."""

    def __init__(self, message: str, database: Optional[str] = None):
        super().__init__(message)
        self.database = database


class InstantiationError(JsonLightError):
    """The database directory could not be prepared. Fatal for the store."""

    def __init__(self, location):
        super().__init__(f"Database couldn't instantiate at {location}")
        self.location = location


class CreateError(JsonLightError):
    def __init__(self, database: str):
        super().__init__(f"Database couldn't create table: {database}", database)


class ReadError(JsonLightError):
    def __init__(self, database: str):
        super().__init__(f"Database couldn't be read: {database}", database)


class ParseError(JsonLightError):
    def __init__(self, database: str, reason: str = "invalid JSON"):
        super().__init__(f"Database couldn't be parsed ({reason}): {database}", database)


class BusyError(JsonLightError):
    """
    A flush was requested while another one is in flight.
    The value is kept in RAM and goes out with the next successful flush.
    """

    def __init__(self, database: str):
        super().__init__(f"Database is being written: {database}", database)


class FlushError(JsonLightError):
    def __init__(self, database: str):
        super().__init__(f"Database couldn't be written: {database}", database)


class NotOpenError(JsonLightError):
    def __init__(self, database: str):
        super().__init__(f"Database is not open: {database}", database)
