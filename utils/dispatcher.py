import logging
from datetime import datetime, timezone

import discord
from discord.ext import commands

from utils.customerrors import ReminderDeliveryError

__all__ = (
    "ReminderDispatcher",
)


logger = logging.getLogger(__name__)


class ReminderDispatcher:
    """Sends due reminders to their channel.

    Delivery is at-most-once: by the time a reminder reaches the dispatcher it has
    already been removed from its member's table, so a failed send loses it.
    """

    def __init__(self, bot: commands.AutoShardedBot):
        self.bot = bot

    async def get_channel(self, channel_id: int, guild_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except discord.NotFound:
                raise ReminderDeliveryError(channel_id, "the channel no longer exists")
            except discord.Forbidden:
                raise ReminderDeliveryError(channel_id, "the channel is not accessible")
        guild = getattr(channel, "guild", None)
        if guild is not None and guild.id != guild_id:
            raise ReminderDeliveryError(channel_id, f"the channel does not belong to guild {guild_id}")
        if not hasattr(channel, "send"):
            raise ReminderDeliveryError(channel_id, "the channel cannot receive messages")
        return channel

    def make_embed(self, text: str, member_id: int, channel) -> discord.Embed:
        embed = discord.Embed(title="Reminder",
                              description=text,
                              color=discord.Color.blue(),
                              timestamp=datetime.now(timezone.utc))
        guild = getattr(channel, "guild", None)
        member = guild.get_member(member_id) if guild is not None else None
        if member is not None:
            embed.set_author(name=f"Reminder for {member.display_name}", icon_url=member.display_avatar.url)
        return embed

    async def deliver(self, channel_id: int, text: str, guild_id: int, member_id: int) -> bool:
        try:
            channel = await self.get_channel(channel_id, guild_id)
            await channel.send(content=f"<@{member_id}>",
                               embed=self.make_embed(text, member_id, channel),
                               allowed_mentions=discord.AllowedMentions(users=True))
        except ReminderDeliveryError as e:
            logger.warning("Reminder for member %s in guild %s was lost: %s", member_id, guild_id, e)
            return False
        except (discord.HTTPException, discord.InvalidData) as e:
            logger.warning("Reminder for member %s in guild %s was lost: could not send to channel %s: %s",
                           member_id, guild_id, channel_id, e)
            return False
        logger.info("Delivered reminder for member %s in guild %s to channel %s", member_id, guild_id, channel_id)
        return True
