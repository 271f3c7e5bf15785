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
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LOCATION = Path(__file__).resolve().parent / "databases"
DEFAULT_IDLE_TIMEOUT_MS = 1000 * 60 * 5  # 5 minutes
DEFAULT_FLUSH_INTERVAL_MS = -1  # no limit

# camelCase names and the option names of the old `db` section
_ALIASES = {
    "idleTimeoutMs": "idle_timeout_ms",
    "timeout": "idle_timeout_ms",
    "flushIntervalMs": "flush_interval_ms",
    "fileTimeout": "flush_interval_ms",
}


class Config(BaseModel):
    """Immutable store configuration. Build it with `resolve()`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Directory holding the <name>.db.json files
    location: Path = Field(default=DEFAULT_LOCATION)
    # Inactivity before a database is flushed and unloaded (-1 = never close)
    idle_timeout_ms: int = Field(default=DEFAULT_IDLE_TIMEOUT_MS)
    # Cooldown between two disk writes of one database (<= 0 = no limit)
    flush_interval_ms: int = Field(default=DEFAULT_FLUSH_INTERVAL_MS)

    @field_validator("idle_timeout_ms")
    @classmethod
    def _check_idle_timeout(cls, value: int) -> int:
        if value < -1:
            raise ValueError("idle_timeout_ms must be -1 (never close) or >= 0")
        return value

    @property
    def idle_timeout(self) -> Optional[float]:
        """Idle timeout in seconds, None when auto-close is disabled."""
        if self.idle_timeout_ms < 0:
            return None
        return self.idle_timeout_ms / 1000

    @property
    def flush_interval(self) -> float:
        """Throttle window in seconds, 0 when flushes are unlimited."""
        if self.flush_interval_ms <= 0:
            return 0.0
        return self.flush_interval_ms / 1000


def _canonical(section: Mapping[str, Any]) -> Dict[str, Any]:
    options = {}
    for key, value in section.items():
        if value is None:
            continue
        options[_ALIASES.get(key, key)] = value
    return options


def resolve(raw: Union[None, Config, Mapping[str, Any]] = None, **overrides) -> Config:
    """
    Fills every missing option with its default and returns a frozen Config.

    `raw` may be a Config, a flat mapping of options, or a mapping with the
    options nested under "db". Keyword overrides win over `raw`.
    The caller's mapping is copied, never modified.

    Absent or partial input never fails. A value of the wrong type, or an
    idle_timeout_ms below -1, raises pydantic's ValidationError.
    """
    if isinstance(raw, Config):
        if not overrides:
            return raw
        options = raw.model_dump()
    else:
        raw = raw or {}
        section = raw.get("db", raw)
        if not isinstance(section, Mapping):
            section = {}
        options = _canonical(dict(section))

    options.update(_canonical(overrides))
    return Config.model_validate(options)
