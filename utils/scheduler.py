import enum
import logging
from datetime import datetime, timezone
from typing import List, Tuple

from discord.ext import tasks

from utils.customerrors import GuildStorageError
from utils.dispatcher import ReminderDispatcher
from utils.guilddata import Reminder
from utils.guildstore import GuildStore

__all__ = (
    "SchedulerState",
    "ReminderScheduler",
)


logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"

    def __str__(self):
        return self.value


class ReminderScheduler:
    """Periodically hands every due reminder of every resident guild to the dispatcher.

    A guild that is busy with a command when a tick starts is skipped and picked up on
    the next tick, so a reminder can be delivered up to one interval late.
    """

    def __init__(self, store: GuildStore, dispatcher: ReminderDispatcher, interval: float = 5.0):
        self.store = store
        self.dispatcher = dispatcher
        self.interval = interval
        self.state = SchedulerState.IDLE
        self.scan_loop.change_interval(seconds=interval)

    @property
    def running(self) -> bool:
        return self.scan_loop.is_running()

    def start(self):
        if not self.scan_loop.is_running():
            self.scan_loop.start()
            logger.info("Reminder scheduler started (every %s seconds)", self.interval)

    def stop(self):
        if self.scan_loop.is_running():
            self.scan_loop.stop()

    async def shutdown(self):
        task = self.scan_loop.get_task()
        self.stop()
        if task is not None and not task.done():
            await task
        logger.info("Reminder scheduler stopped")

    @tasks.loop(seconds=5.0)
    async def scan_loop(self):
        await self.scan()

    @scan_loop.error
    async def scan_loop_error(self, error: BaseException):
        logger.error("Reminder scheduler loop crashed", exc_info=error)

    async def scan(self, now: datetime = None) -> int:
        self.state = SchedulerState.SCANNING
        dispatched = 0
        try:
            for guild_id, _ in self.store.all_loaded():
                if self.store.locked(guild_id):
                    logger.debug("Guild %s is busy, skipping it this tick", guild_id)
                    continue
                try:
                    dispatched += await self.scan_guild(guild_id, now)
                except GuildStorageError as e:
                    logger.warning("Reminder scan for guild %s could not save: %s", guild_id, e)
                except Exception:
                    logger.exception("Reminder scan failed for guild %s", guild_id)
        finally:
            self.state = SchedulerState.IDLE
        return dispatched

    async def scan_guild(self, guild_id: int, now: datetime = None) -> int:
        due: List[Tuple[int, Reminder]] = []
        async with self.store.acquire(guild_id, create=False) as data:
            if data is None:
                logger.debug("Guild %s was unloaded during the scan, skipping it", guild_id)
                return 0
            now = now or datetime.now(timezone.utc)
            for member_id, member in data.members.items():
                due.extend((member_id, reminder) for reminder in member.remove_due(now))
            if due:
                self.store.mark_dirty(guild_id)

        for member_id, reminder in due:
            try:
                await self.dispatcher.deliver(reminder.channel_id, reminder.text, guild_id, member_id)
            except Exception:
                logger.exception("Unexpected error delivering reminder for member %s in guild %s",
                                 member_id, guild_id)

        if self.store.is_dirty(guild_id):
            await self.store.save(guild_id)
        return len(due)
