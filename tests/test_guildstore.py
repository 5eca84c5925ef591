"""Tests for the guild store and its file backend."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from utils.customerrors import GuildStorageError
from utils.guilddata import GuildData, Reminder
from utils.guildstore import GuildStore, JsonFileBackend

from conftest import MemoryBackend

DUE = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class SlowBackend(MemoryBackend):
    async def load(self, guild_id):
        await asyncio.sleep(0.01)
        return await super().load(guild_id)


@pytest.mark.asyncio
async def test_get_or_create_creates_empty_guild(store, backend):
    data = await store.get_or_create(1)
    assert isinstance(data, GuildData)
    assert data.members == {}
    assert await store.get_or_create(1) is data
    assert backend.loads == [1]
    assert 1 in store


@pytest.mark.asyncio
async def test_get_or_create_loads_existing_document():
    backend = MemoryBackend({1: {"settings": {"language": "ru"}, "members": {"3": {"reminders": [
        {"due_at": DUE.isoformat(), "channel_id": 4, "text": "hi"}]}}}})
    store = GuildStore(backend)
    data = await store.get_or_create(1)
    assert data.settings == {"language": "ru"}
    assert data.members[3].list_all() == [(0, Reminder(DUE, 4, "hi"))]


@pytest.mark.asyncio
async def test_concurrent_first_access_loads_once():
    backend = SlowBackend()
    store = GuildStore(backend)
    results = await asyncio.gather(*(store.get_or_create(1) for _ in range(20)),
                                   *(store.get_or_create(2) for _ in range(5)))
    assert all(result is results[0] for result in results[:20])
    assert all(result is results[20] for result in results[20:])
    assert results[0] is not results[20]
    assert sorted(backend.loads) == [1, 2]


@pytest.mark.asyncio
async def test_failed_load_leaves_nothing_resident_and_retries(store, backend):
    backend.fail_loads = True
    with pytest.raises(GuildStorageError):
        await store.get_or_create(1)
    assert 1 not in store

    backend.fail_loads = False
    data = await store.get_or_create(1)
    assert data is await store.get_or_create(1)
    assert backend.loads == [1, 1]


@pytest.mark.asyncio
async def test_acquire_serializes_access_per_guild(store):
    events = []

    async def worker(name):
        async with store.acquire(1):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"), worker("c"))
    assert len(events) == 6
    for entered, left in zip(events[::2], events[1::2]):
        assert entered.endswith("-in")
        assert left == entered.replace("-in", "-out")


@pytest.mark.asyncio
async def test_different_guilds_do_not_contend(store):
    async with store.acquire(1):
        assert store.locked(1)
        assert not store.locked(2)
        async with store.acquire(2) as other:
            assert isinstance(other, GuildData)
    assert not store.locked(1)


@pytest.mark.asyncio
async def test_save_writes_document_and_clears_dirty(store, backend):
    async with store.acquire(1) as data:
        data.get_or_create_member(9).add(Reminder(DUE, 2, "x"))
        store.mark_dirty(1)
    assert store.is_dirty(1)

    await store.save(1)
    assert not store.is_dirty(1)
    assert backend.documents[1]["members"]["9"]["reminders"][0]["text"] == "x"

    await store.save(1)
    assert backend.documents[1]["members"]["9"]["reminders"][0]["text"] == "x"


@pytest.mark.asyncio
async def test_save_of_unknown_guild_is_noop(store, backend):
    await store.save(12345)
    assert backend.saves == []


@pytest.mark.asyncio
async def test_failed_save_keeps_memory_and_is_retried(store, backend):
    backend.fail_saves = True
    async with store.acquire(1) as data:
        data.get_or_create_member(9).add(Reminder(DUE, 2, "first"))
        store.mark_dirty(1)
    with pytest.raises(GuildStorageError):
        await store.save(1)
    assert store.is_dirty(1)
    assert 1 not in backend.documents
    assert (await store.get_or_create(1)).members[9].list_all()[0][1].text == "first"

    backend.fail_saves = False
    assert await store.flush() == 0
    assert not store.is_dirty(1)
    assert backend.documents[1]["members"]["9"]["reminders"][0]["text"] == "first"


@pytest.mark.asyncio
async def test_all_loaded_is_a_snapshot(store):
    await store.get_or_create(1)
    await store.get_or_create(2)
    snapshot = store.all_loaded()
    await store.get_or_create(3)
    assert [guild_id for guild_id, _ in snapshot] == [1, 2]
    assert len(store) == 3


@pytest.mark.asyncio
async def test_unload_saves_and_evicts(store, backend):
    async with store.acquire(1) as data:
        data.get_or_create_member(9).add(Reminder(DUE, 2, "keep"))
    await store.unload(1)
    assert 1 not in store
    assert backend.documents[1]["members"]["9"]["reminders"][0]["text"] == "keep"

    reloaded = await store.get_or_create(1)
    assert reloaded.members[9].list_all()[0][1].text == "keep"


@pytest.mark.asyncio
async def test_unload_keeps_guild_when_save_fails(store, backend):
    await store.get_or_create(1)
    backend.fail_saves = True
    with pytest.raises(GuildStorageError):
        await store.unload(1)
    assert 1 in store


@pytest.mark.asyncio
async def test_json_file_backend_round_trip(tmp_path):
    backend = JsonFileBackend(str(tmp_path / "guilds"))
    await backend.init()
    assert await backend.load(1) is None

    payload = {"settings": {"language": "en"}, "members": {"2": {"reminders": []}}}
    await backend.save(1, payload)
    assert await backend.load(1) == payload
    assert json.loads((tmp_path / "guilds" / "1.json").read_text()) == payload
    assert not (tmp_path / "guilds" / "1.json.tmp").exists()


@pytest.mark.asyncio
async def test_json_file_backend_reports_corrupt_file(tmp_path):
    backend = JsonFileBackend(str(tmp_path))
    (tmp_path / "1.json").write_text("{not json")
    with pytest.raises(GuildStorageError) as excinfo:
        await backend.load(1)
    assert excinfo.value.operation == "load"


@pytest.mark.asyncio
async def test_store_over_json_backend_persists_across_instances(tmp_path):
    first = GuildStore(JsonFileBackend(str(tmp_path)))
    async with first.acquire(1) as data:
        data.get_or_create_member(3).add(Reminder(DUE, 4, "persisted"))
    await first.save(1)

    second = GuildStore(JsonFileBackend(str(tmp_path)))
    data = await second.get_or_create(1)
    assert data.members[3].list_all() == [(0, Reminder(DUE, 4, "persisted"))]


@pytest.mark.asyncio
async def test_acquire_without_create_does_not_load(store, backend):
    async with store.acquire(5, create=False) as data:
        assert data is None
    assert 5 not in store
    assert backend.loads == []

    await store.get_or_create(5)
    async with store.acquire(5, create=False) as data:
        assert data is not None
