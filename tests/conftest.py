import asyncio

import pytest

from JsonLight.system import Light


class FlakyLight(Light):
    """File storage that counts calls and fails on demand."""

    __slots__ = ("fail_writes", "fail_reads", "reads", "writes", "mkdirs", "write_delay")

    def __init__(self, location):
        super().__init__(location)
        self.fail_writes = False
        self.fail_reads = False
        self.reads = 0
        self.writes = 0
        self.mkdirs = 0
        self.write_delay = 0

    async def ensure_directory(self):
        self.mkdirs += 1
        return await super().ensure_directory()

    async def read_file(self, path):
        self.reads += 1
        if self.fail_reads:
            raise OSError("read failed")
        return await super().read_file(path)

    async def write_file(self, path, data):
        self.writes += 1
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.fail_writes:
            raise OSError("disk full")
        await super().write_file(path, data)


@pytest.fixture
def db_dir(tmp_path):
    return tmp_path / "databases"


@pytest.fixture
def flaky_storage(db_dir):
    return FlakyLight(db_dir)


@pytest.fixture
def flaky_light():
    return FlakyLight
