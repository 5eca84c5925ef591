import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import asyncpg
from aiofile import async_open

from utils.customerrors import GuildStorageError
from utils.guilddata import GuildData

__all__ = (
    "PostgresBackend",
    "JsonFileBackend",
    "GuildStore",
)


logger = logging.getLogger(__name__)


class PostgresBackend:
    """Stores each guild as one JSONB document in the ``guild_data`` table"""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def init(self):
        async with self.pool.acquire() as con:
            await con.execute("CREATE TABLE IF NOT EXISTS guild_data(guild_id bigint PRIMARY KEY, data jsonb "
                              "NOT NULL DEFAULT '{}'::jsonb)")

    async def load(self, guild_id: int) -> Optional[Dict[str, Any]]:
        try:
            async with self.pool.acquire() as con:
                raw = await con.fetchval("SELECT data FROM guild_data WHERE guild_id = $1", guild_id)
            return json.loads(raw) if raw else None
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, ValueError) as e:
            raise GuildStorageError(guild_id, "load", str(e)) from e

    async def save(self, guild_id: int, payload: Dict[str, Any]):
        try:
            async with self.pool.acquire() as con:
                await con.execute("INSERT INTO guild_data(guild_id, data) VALUES ($1, $2::jsonb) "
                                  "ON CONFLICT (guild_id) DO UPDATE SET data = EXCLUDED.data",
                                  guild_id, json.dumps(payload))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise GuildStorageError(guild_id, "save", str(e)) from e


class JsonFileBackend:
    """Stores each guild as ``<directory>/<guild_id>.json``"""

    def __init__(self, directory: str):
        self.directory = os.path.abspath(directory)

    async def init(self):
        os.makedirs(self.directory, exist_ok=True)

    def path(self, guild_id: int) -> str:
        return os.path.join(self.directory, f"{guild_id}.json")

    async def load(self, guild_id: int) -> Optional[Dict[str, Any]]:
        path = self.path(guild_id)
        if not os.path.exists(path):
            return None
        try:
            async with async_open(path, "rb") as jsonfile:
                return json.loads(await jsonfile.read())
        except (OSError, ValueError) as e:
            raise GuildStorageError(guild_id, "load", str(e)) from e

    async def save(self, guild_id: int, payload: Dict[str, Any]):
        path = self.path(guild_id)
        tmp_path = f"{path}.tmp"
        try:
            os.makedirs(self.directory, exist_ok=True)
            async with async_open(tmp_path, "wb") as jsonfile:
                await jsonfile.write(json.dumps(payload, indent=4).encode())
            os.replace(tmp_path, path)
        except OSError as e:
            raise GuildStorageError(guild_id, "save", str(e)) from e


class GuildStore:
    """Owns every resident :class:`GuildData`.

    Guilds are loaded on first reference and stay resident until :meth:`unload`.
    All reminder reads and writes go through :meth:`acquire`, which holds a lock
    that belongs to that guild alone.
    """

    def __init__(self, backend):
        self.backend = backend
        self._guilds: Dict[int, GuildData] = {}
        self._loading: Dict[int, asyncio.Future] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._save_locks: Dict[int, asyncio.Lock] = {}
        self._dirty = set()

    def __contains__(self, guild_id: int) -> bool:
        return guild_id in self._guilds

    def __len__(self):
        return len(self._guilds)

    async def _load(self, guild_id: int) -> GuildData:
        payload = await self.backend.load(guild_id)
        data = GuildData.from_dict(payload) if payload else GuildData()
        self._guilds[guild_id] = data
        logger.debug("Loaded data for guild %s (%s pending reminders)", guild_id, data.pending_count())
        return data

    async def get_or_create(self, guild_id: int) -> GuildData:
        data = self._guilds.get(guild_id)
        if data is not None:
            return data

        task = self._loading.get(guild_id)
        if task is None:
            task = asyncio.ensure_future(self._load(guild_id))
            self._loading[guild_id] = task

            def _done(finished: asyncio.Future):
                if self._loading.get(guild_id) is finished:
                    del self._loading[guild_id]
                if not finished.cancelled() and finished.exception() is not None:
                    logger.warning("Could not load data for guild %s: %s", guild_id, finished.exception())

            task.add_done_callback(_done)
        return await asyncio.shield(task)

    def _lock_for(self, guild_id: int) -> asyncio.Lock:
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = self._locks[guild_id] = asyncio.Lock()
        return lock

    def _save_lock_for(self, guild_id: int) -> asyncio.Lock:
        lock = self._save_locks.get(guild_id)
        if lock is None:
            lock = self._save_locks[guild_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def acquire(self, guild_id: int, create: bool = True):
        """Hold the guild's lock and yield its data.

        With ``create=False`` a guild that is not resident is never loaded and
        ``None`` is yielded instead.
        """
        if create:
            await self.get_or_create(guild_id)
        async with self._lock_for(guild_id):
            # may have been unloaded while waiting for the lock
            data = self._guilds.get(guild_id)
            if data is None and create:
                data = await self.get_or_create(guild_id)
            yield data

    def locked(self, guild_id: int) -> bool:
        lock = self._locks.get(guild_id)
        return lock is not None and lock.locked()

    def mark_dirty(self, guild_id: int):
        self._dirty.add(guild_id)

    def is_dirty(self, guild_id: int) -> bool:
        return guild_id in self._dirty

    async def save(self, guild_id: int):
        if guild_id not in self._guilds:
            return
        async with self._save_lock_for(guild_id):
            data = self._guilds.get(guild_id)
            if data is None:
                return
            self._dirty.discard(guild_id)
            payload = data.to_dict()
            try:
                await self.backend.save(guild_id, payload)
            except GuildStorageError as e:
                self._dirty.add(guild_id)
                logger.warning("Saving guild %s failed, will retry on the next save: %s", guild_id, e)
                raise

    def all_loaded(self) -> List[Tuple[int, GuildData]]:
        return list(self._guilds.items())

    async def flush(self) -> int:
        failed = 0
        for guild_id in list(self._dirty):
            try:
                await self.save(guild_id)
            except GuildStorageError:
                failed += 1
        return failed

    async def unload(self, guild_id: int):
        if guild_id not in self._guilds:
            return
        async with self._lock_for(guild_id):
            await self.save(guild_id)
            self._guilds.pop(guild_id, None)
            self._dirty.discard(guild_id)
        logger.info("Unloaded data for guild %s", guild_id)
