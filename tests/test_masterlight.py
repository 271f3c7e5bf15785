import asyncio
import json
import logging

import pytest

from JsonLight.config import resolve
from JsonLight.errors import (
    CreateError, FlushError, InstantiationError, NotOpenError, ParseError, ReadError
)
from JsonLight.MasterLight import MasterLight


def make_registry(storage, **options):
    options.setdefault("idle_timeout_ms", -1)
    return MasterLight(resolve(location=storage.location, **options), storage=storage)


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_first_open_creates_empty_document(flaky_storage, db_dir):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("fresh")

    assert registry.is_open("fresh")
    assert read_json(db_dir / "fresh.db.json") == {}
    assert registry.get("fresh", "anything", "d") == "d"


@pytest.mark.asyncio
async def test_existing_file_is_loaded(flaky_storage, db_dir):
    db_dir.mkdir()
    (db_dir / "old.db.json").write_text('{"k": [1, 2]}', encoding="utf-8")

    registry = make_registry(flaky_storage)
    await registry.ensure_open("old")
    assert registry.get("old", "k") == [1, 2]
    # no placeholder write for an existing file
    assert flaky_storage.writes == 0


@pytest.mark.asyncio
async def test_concurrent_first_opens_load_once(flaky_storage):
    registry = make_registry(flaky_storage)
    await asyncio.gather(*(registry.ensure_open("race") for _ in range(5)))

    assert flaky_storage.reads == 1
    assert flaky_storage.writes == 1
    assert registry.open_databases() == ["race"]


@pytest.mark.asyncio
async def test_second_open_uses_memory(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    registry.set("a", "k", "v")
    await registry.ensure_open("a")

    assert flaky_storage.reads == 1
    assert registry.get("a", "k") == "v"


@pytest.mark.asyncio
async def test_falsy_values_read_as_default(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    for key, value in [("zero", 0), ("empty", ""), ("no", False), ("none", None)]:
        registry.set("a", key, value)
        assert registry.get("a", key, "d") == "d"
        assert registry.has("a", key)
    assert not registry.has("a", "missing")


@pytest.mark.asyncio
async def test_delete_key(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    registry.set("a", "k", 1)
    assert registry.delete("a", "k") is True
    assert registry.delete("a", "k") is False
    assert not registry.has("a", "k")


def test_accessors_need_open_database(flaky_storage):
    registry = make_registry(flaky_storage)
    with pytest.raises(NotOpenError):
        registry.get("closed", "k")
    with pytest.raises(NotOpenError):
        registry.set("closed", "k", 1)


@pytest.mark.asyncio
async def test_unusable_location_fails_every_call(tmp_path, flaky_light):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    storage = flaky_light(blocker / "databases")
    registry = make_registry(storage)

    with pytest.raises(InstantiationError):
        await registry.ensure_open("a")
    with pytest.raises(InstantiationError):
        await registry.ensure_open("b")
    # directory creation is attempted only once
    assert storage.mkdirs == 1


@pytest.mark.asyncio
async def test_create_error_when_placeholder_write_fails(flaky_storage):
    registry = make_registry(flaky_storage)
    flaky_storage.fail_writes = True

    with pytest.raises(CreateError) as excinfo:
        await registry.ensure_open("a")
    assert excinfo.value.database == "a"
    assert isinstance(excinfo.value.__cause__, OSError)
    assert not registry.is_open("a")


@pytest.mark.asyncio
async def test_read_error(flaky_storage):
    registry = make_registry(flaky_storage)
    flaky_storage.fail_reads = True

    with pytest.raises(ReadError):
        await registry.ensure_open("a")
    assert not registry.is_open("a")

    # nothing sticks, a later attempt can succeed
    flaky_storage.fail_reads = False
    await registry.ensure_open("a")
    assert registry.is_open("a")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [b"{not json", b"[1, 2]", b"\xff\xfe"])
async def test_parse_error(flaky_storage, db_dir, content):
    db_dir.mkdir()
    (db_dir / "bad.db.json").write_bytes(content)
    registry = make_registry(flaky_storage)

    with pytest.raises(ParseError):
        await registry.ensure_open("bad")
    assert not registry.is_open("bad")


@pytest.mark.asyncio
async def test_flush_writes_whole_document(flaky_storage, db_dir):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    registry.set("a", "one", 1)
    registry.set("a", "two", {"nested": True})

    assert await registry.flush("a") is True
    assert read_json(db_dir / "a.db.json") == {"one": 1, "two": {"nested": True}}


@pytest.mark.asyncio
async def test_flush_of_closed_database_is_noop(flaky_storage):
    registry = make_registry(flaky_storage)
    assert await registry.flush("never") is False
    assert flaky_storage.writes == 0


@pytest.mark.asyncio
async def test_unserializable_value_is_flush_error(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    registry.set("a", "obj", object())

    with pytest.raises(FlushError):
        await registry.flush("a")


@pytest.mark.asyncio
async def test_close_flushes_and_unloads(flaky_storage, db_dir):
    registry = make_registry(flaky_storage, idle_timeout_ms=60000)
    await registry.ensure_open("a")
    registry.set("a", "k", "v")
    assert registry.evictor.armed("a")

    await registry.close("a")
    assert not registry.is_open("a")
    assert not registry.evictor.armed("a")
    assert read_json(db_dir / "a.db.json") == {"k": "v"}

    # closing again is harmless, reopening reloads from disk
    await registry.close("a")
    await registry.ensure_open("a")
    assert registry.get("a", "k") == "v"


@pytest.mark.asyncio
async def test_explicit_close_keeps_document_on_failure(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    registry.set("a", "k", "v")
    flaky_storage.fail_writes = True

    with pytest.raises(FlushError):
        await registry.close("a")
    assert registry.is_open("a")
    assert registry.get("a", "k") == "v"

    flaky_storage.fail_writes = False
    await registry.close("a")
    assert not registry.is_open("a")


@pytest.mark.asyncio
async def test_idle_eviction_drops_document_even_on_failure(flaky_storage, caplog):
    registry = make_registry(flaky_storage, idle_timeout_ms=20)
    await registry.ensure_open("a")
    flaky_storage.fail_writes = True

    with caplog.at_level(logging.ERROR):
        await asyncio.sleep(0.2)
    assert not registry.is_open("a")
    assert "dropped unflushed changes" in caplog.text


@pytest.mark.asyncio
async def test_close_all_flushes_every_database(flaky_storage, db_dir):
    registry = make_registry(flaky_storage, idle_timeout_ms=60000)
    for name in ("a", "b"):
        await registry.ensure_open(name)
        registry.set(name, "name", name)

    await registry.close_all()
    assert registry.open_databases() == []
    assert not registry.evictor.armed("a")
    assert read_json(db_dir / "a.db.json") == {"name": "a"}
    assert read_json(db_dir / "b.db.json") == {"name": "b"}


@pytest.mark.asyncio
async def test_close_all_reports_failure_after_trying_all(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("a")
    await registry.ensure_open("b")
    flaky_storage.fail_writes = True

    with pytest.raises(FlushError):
        await registry.close_all()
    assert flaky_storage.writes == 2 + 2
    assert sorted(registry.open_databases()) == ["a", "b"]


@pytest.mark.asyncio
async def test_list_databases(flaky_storage):
    registry = make_registry(flaky_storage)
    await registry.ensure_open("x")
    await registry.ensure_open("y")
    await registry.close("x")

    assert await registry.list_databases() == ["x", "y"]


@pytest.mark.asyncio
async def test_touch_after_timer_fired_cancels_eviction(flaky_storage):
    registry = make_registry(flaky_storage, idle_timeout_ms=60)
    await registry.ensure_open("a")

    async with registry._locked("a"):
        # the timer fires and its eviction queues behind the held lock
        await asyncio.sleep(0.2)
        assert not registry.evictor.armed("a")
        registry.evictor.touch("a")
    await asyncio.sleep(0.01)

    assert registry.is_open("a")
    # only the placeholder was ever written
    assert flaky_storage.writes == 1
    registry.evictor.cancel("a")


@pytest.mark.asyncio
async def test_locks_are_released_with_the_database(flaky_storage):
    registry = make_registry(flaky_storage)

    flaky_storage.fail_reads = True
    with pytest.raises(ReadError):
        await registry.ensure_open("a")
    assert "a" not in registry._locks

    await registry.flush("never")
    assert "never" not in registry._locks

    flaky_storage.fail_reads = False
    await registry.ensure_open("a")
    assert "a" in registry._locks

    await registry.close("a")
    assert registry._locks == {}
    assert registry._lock_users == {}
