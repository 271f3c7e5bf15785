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
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

import ujson

from .logger import get_logger

logger = get_logger(__name__)

FILE_SUFFIX = ".db.json"


class Light:
    """
    Filesystem side of the store: one UTF-8 JSON file per database.
    Every blocking call runs in a worker thread so the event loop never stalls.
    """

    __slots__ = ("location",)

    def __init__(self, location: Union[str, Path]):
        self.location = Path(location)

    # ===============================
    # Helper & Safety
    # ===============================
    def path_for(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
            raise ValueError(f"Insecure database name: {name!r}")
        return self.location / f"{name}{FILE_SUFFIX}"

    def serialize(self, document: Dict[str, Any]) -> bytes:
        return ujson.dumps(document, ensure_ascii=False, escape_forward_slashes=False).encode("utf-8")

    def deserialize(self, raw: bytes) -> Any:
        return ujson.loads(raw.decode("utf-8"))

    # ===============================
    # Core Operations
    # ===============================
    async def ensure_directory(self) -> Path:
        await asyncio.to_thread(self.location.mkdir, parents=True, exist_ok=True)
        return self.location

    async def exists(self, path: Path) -> bool:
        try:
            return await asyncio.to_thread(path.is_file)
        except OSError:
            return False

    async def read_file(self, path: Path) -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    async def write_file(self, path: Path, data: bytes) -> None:
        await asyncio.to_thread(_replace_file, path, data)

    async def list_names(self) -> List[str]:
        """Names of every database that has a file in the location."""
        return await asyncio.to_thread(self._scan)

    def _scan(self) -> List[str]:
        if not self.location.is_dir():
            return []
        return sorted(
            p.name[: -len(FILE_SUFFIX)]
            for p in self.location.iterdir()
            if p.name.endswith(FILE_SUFFIX) and p.is_file()
        )


def _replace_file(path: Path, data: bytes) -> None:
    # Write a sibling temp file and swap it in, readers never see half a file
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as tmpf:
            tmpf.write(data)
            tmpf.flush()
            os.fsync(tmpf.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("Could not remove temp file %s", tmp_path)
