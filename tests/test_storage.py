"""Session store tests for Void Focus."""

import asyncio
import json
import re

import pytest

from void_focus.core import FocusSession, JsonKeyValueStore, SessionStore, UnsupportedSchemaError
from void_focus.core.config import SESSIONS_KEY


def _session(session_id, start=1_700_000_000_000, active=False):
    if active:
        return FocusSession(id=session_id, start_time=start)
    return FocusSession(id=session_id, start_time=start, end_time=start + 60_000, duration=60, is_active=False)


class FailingBackend(JsonKeyValueStore):
    """Backend whose writes always fail."""

    async def set_item(self, key, value):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_empty_store(session_store):
    assert await session_store.get_all() == []


@pytest.mark.asyncio
async def test_add_puts_new_session_first(session_store):
    await session_store.add(_session("a"))
    sessions = await session_store.add(_session("b"))

    assert [s.id for s in sessions] == ["b", "a"]
    assert [s.id for s in await session_store.get_all()] == ["b", "a"]


@pytest.mark.asyncio
async def test_add_then_delete_round_trip(session_store):
    """Deleting removes exactly that record and leaves the others untouched."""
    await session_store.add(_session("a", start=1))
    original = await session_store.add(_session("b", start=2))

    await session_store.add(_session("c", start=3))
    remaining = await session_store.delete("c")

    assert remaining == original
    assert await session_store.get_all() == original


@pytest.mark.asyncio
async def test_update_changes_only_target(session_store):
    await session_store.add(_session("a"))
    await session_store.add(_session("live", active=True))

    sessions = await session_store.update("live", end_time=1_700_000_600_000, duration=600, is_active=False)

    by_id = {s.id: s for s in sessions}
    assert by_id["live"].end_time == 1_700_000_600_000
    assert by_id["live"].duration == 600
    assert by_id["live"].is_active is False
    assert by_id["a"] == _session("a")


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(session_store):
    with pytest.raises(TypeError):
        await session_store.update("a", colour="red")


@pytest.mark.asyncio
async def test_persisted_layout_is_versioned(session_store, store_path):
    await session_store.add(_session("a", active=True))

    raw = json.loads(store_path.read_text(encoding="utf-8"))
    document = json.loads(raw[SESSIONS_KEY])
    assert document["version"] == 1
    assert document["sessions"] == [
        {"id": "a", "startTime": 1_700_000_000_000, "endTime": None, "duration": 0, "isActive": True}
    ]


@pytest.mark.asyncio
async def test_unversioned_list_is_migrated(session_store, store_path):
    legacy = [_session("old").to_dict()]
    store_path.write_text(json.dumps({SESSIONS_KEY: json.dumps(legacy)}), encoding="utf-8")

    assert [s.id for s in await session_store.get_all()] == ["old"]

    await session_store.add(_session("new"))
    document = json.loads(json.loads(store_path.read_text(encoding="utf-8"))[SESSIONS_KEY])
    assert document["version"] == 1
    assert [s["id"] for s in document["sessions"]] == ["new", "old"]


@pytest.mark.asyncio
async def test_unknown_version_is_rejected_and_kept(store_path):
    store_path.parent.mkdir(parents=True, exist_ok=True)
    stored = json.dumps({"version": 99, "sessions": [{"whatever": True}]})
    store_path.write_text(json.dumps({SESSIONS_KEY: stored}), encoding="utf-8")

    errors = []
    store = SessionStore(JsonKeyValueStore(store_path), on_error=lambda op, err: errors.append((op, err)))

    assert await store.get_all() == []
    sessions = await store.add(_session("a"))

    # The caller keeps its in-memory result, the unknown document is not overwritten
    assert [s.id for s in sessions] == ["a"]
    assert json.loads(store_path.read_text(encoding="utf-8"))[SESSIONS_KEY] == stored
    assert errors and all(op == "read" for op, _ in errors)
    assert isinstance(errors[0][1], UnsupportedSchemaError)


@pytest.mark.asyncio
async def test_corrupt_store_reads_as_empty(store_path):
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text("{not json", encoding="utf-8")
    errors = []
    store = SessionStore(JsonKeyValueStore(store_path), on_error=lambda op, err: errors.append(op))

    assert await store.get_all() == []
    assert errors == ["read"]


@pytest.mark.asyncio
async def test_write_failure_is_reported_not_raised(store_path):
    errors = []
    store = SessionStore(FailingBackend(store_path), on_error=lambda op, err: errors.append((op, str(err))))

    sessions = await store.add(_session("a"))

    assert [s.id for s in sessions] == ["a"]
    assert errors == [("write", "disk full")]
    assert await store.get_all() == []


@pytest.mark.asyncio
async def test_concurrent_writes_do_not_lose_updates(session_store):
    await asyncio.gather(*(session_store.add(_session(f"s{i}", start=i)) for i in range(10)))
    await asyncio.gather(
        session_store.update("s3", duration=999),
        session_store.delete("s5"),
        session_store.add(_session("extra")),
    )

    sessions = {s.id: s for s in await session_store.get_all()}
    assert set(sessions) == {f"s{i}" for i in range(10) if i != 5} | {"extra"}
    assert sessions["s3"].duration == 999


def test_generate_id_format():
    ids = {SessionStore.generate_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.fullmatch(r"\d+_[0-9a-z]{7}", i) for i in ids)
