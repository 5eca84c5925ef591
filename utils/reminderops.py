from datetime import datetime, timedelta, timezone
from typing import List, Tuple

from utils import customerrors
from utils.guilddata import Reminder
from utils.guildstore import GuildStore

__all__ = (
    "create_reminder",
    "list_reminders",
    "delete_reminder",
)


async def create_reminder(store: GuildStore, guild_id: int, member_id: int, channel_id: int,
                          delay: timedelta, text: str, now: datetime = None) -> Reminder:
    """Schedule ``text`` to be sent to ``channel_id`` once ``delay`` has passed.

    The reminder stays in memory even if saving it fails, in which case
    :class:`GuildStorageError` is raised after the reminder was added.
    """
    if not text or not text.strip():
        raise customerrors.EmptyReminderText()
    if delay < timedelta(0):
        raise customerrors.InvalidDelay(str(delay))

    try:
        due_at = (now or datetime.now(timezone.utc)) + delay
    except OverflowError:
        raise customerrors.InvalidDelay(str(delay))

    reminder = Reminder(due_at=due_at,
                        channel_id=channel_id,
                        text=text.strip())
    async with store.acquire(guild_id) as data:
        data.get_or_create_member(member_id).add(reminder)
        store.mark_dirty(guild_id)
    await store.save(guild_id)
    return reminder


async def list_reminders(store: GuildStore, guild_id: int, member_id: int) -> List[Tuple[int, Reminder]]:
    async with store.acquire(guild_id) as data:
        return data.get_or_create_member(member_id).list_all()


async def delete_reminder(store: GuildStore, guild_id: int, member_id: int, index: int) -> Reminder:
    async with store.acquire(guild_id) as data:
        reminder = data.get_or_create_member(member_id).delete_at(index)
        store.mark_dirty(guild_id)
    await store.save(guild_id)
    return reminder
