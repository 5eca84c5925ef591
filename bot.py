import asyncio
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import asyncpg
import discord
from discord.ext import commands

from utils import customerrors, globalcommands
from utils.guildstore import GuildStore, JsonFileBackend, PostgresBackend

try:
    import uvloop
except ImportError:
    pass
else:
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

gcmds = globalcommands.GlobalCMDS()
version = f"Running RemindBot {gcmds.version}"

handler = RotatingFileHandler("bot.log", mode="a", maxBytes=25000000,
                              backupCount=2, encoding="utf-8", delay=False)
handler.setFormatter(logging.Formatter('%(asctime)s:%(levelname)s:%(name)s: %(message)s'))
for name in ("discord", "cogs", "utils"):
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
logger = logging.getLogger("discord")


async def get_prefix(self: commands.AutoShardedBot, message):
    extras = (gcmds.prefix, 'rb ', 'RB ', 'Rb ')
    return commands.when_mentioned_or(*extras)(self, message)


async def run(uptime):
    if not gcmds.env_check("TOKEN"):
        print("Fill in TOKEN in .env before starting the bot")
        return

    db = None
    credentials = gcmds.pg_credentials()
    if credentials:
        db = await asyncpg.create_pool(**credentials)
        backend = PostgresBackend(db)
    else:
        backend = JsonFileBackend(gcmds.data_dir)
    await backend.init()

    description = "Reminds you of things, in the channel you asked from."
    startup = discord.Activity(name="Starting Up...", type=discord.ActivityType.playing)
    intents = discord.Intents.default()
    intents.members = True
    intents.message_content = True
    owner_id = gcmds.env_check("OWNER_ID")
    bot = Bot(command_prefix=get_prefix, shard_count=1, description=description, db=db,
              store=GuildStore(backend), status=discord.Status.online, activity=startup, uptime=uptime,
              intents=intents, owner_id=int(owner_id) if owner_id else None)

    try:
        await bot.start(gcmds.env_check("TOKEN"))
    finally:
        if not bot.is_closed():
            await bot.close()
        if db is not None:
            await db.close()


class Bot(commands.AutoShardedBot):
    def __init__(self, **kwargs):
        global gcmds
        super().__init__(
            command_prefix=kwargs['command_prefix'],
            shard_count=kwargs['shard_count'],
            description=kwargs["description"],
            status=kwargs['status'],
            activity=kwargs['activity'],
            intents=kwargs['intents'],
            owner_id=kwargs['owner_id'],
        )
        self.uptime = kwargs['uptime']
        self.db = kwargs.pop("db")
        self.store = kwargs.pop("store")
        gcmds = globalcommands.GlobalCMDS(bot=self)

    async def setup_hook(self):
        cogs = [filename[:-3] for filename in os.listdir('./cogs')
                if filename.endswith(".py") and not filename.startswith("_")]
        for cog in sorted(cogs):
            await self.load_extension(f'cogs.{cog}')
            logger.info("Cog \"%s\" has been loaded", cog)
        self.loop.create_task(self._init_guilds())

    async def _init_guilds(self):
        await self.wait_until_ready()
        for guild in self.guilds:
            try:
                await self.store.get_or_create(guild.id)
            except customerrors.GuildStorageError as e:
                logger.error("Could not load guild %s on startup: %s", guild.id, e)
        logger.info("%s\nLogged in as %s, serving %s guilds with %s resident (ready in %ss)",
                    version, self.user, len(self.guilds), len(self.store),
                    int(datetime.now().timestamp()) - self.uptime)

    async def on_guild_join(self, guild: discord.Guild):
        try:
            await self.store.get_or_create(guild.id)
        except customerrors.GuildStorageError as e:
            logger.error("Could not load guild %s after joining: %s", guild.id, e)

    async def on_guild_remove(self, guild: discord.Guild):
        try:
            await self.store.unload(guild.id)
        except customerrors.GuildStorageError as e:
            logger.error("Could not save guild %s after leaving, keeping it resident: %s", guild.id, e)

    async def on_command_error(self, ctx, error):
        if isinstance(error, commands.MissingRequiredArgument):
            return await ctx.channel.send(
                embed=discord.Embed(
                    title="Missing Required Argument",
                    description=f"{ctx.author.mention}, `[{error.param.name}]` is a required argument",
                    color=discord.Color.dark_red(),
                )
            )
        elif isinstance(error, commands.BadArgument):
            return await ctx.channel.send(
                embed=discord.Embed(
                    title="Invalid Argument",
                    description=f"{ctx.author.mention}, {error}",
                    color=discord.Color.dark_red(),
                )
            )
        elif isinstance(error, commands.NoPrivateMessage):
            return await ctx.channel.send(
                embed=discord.Embed(
                    title="Command Disabled in Non Server Channels",
                    description=f"{ctx.author.mention}, `{ctx.invoked_with}` can only be accessed in a server",
                    color=discord.Color.dark_red(),
                )
            )
        elif hasattr(error, "original"):
            if isinstance(error.original, discord.Forbidden):
                return await ctx.channel.send(
                    embed=discord.Embed(
                        title="Forbidden",
                        description=f"{ctx.author.mention}, I cannot execute this command because I lack "
                        f"the permissions to do so",
                        color=discord.Color.dark_red(),
                    )
                )
            else:
                logger.error("Unhandled error in command %s", ctx.command, exc_info=error.original)
        elif isinstance(error, (commands.CheckFailure, commands.CommandNotFound)):
            pass
        elif hasattr(error, "embed"):
            if isinstance(error, customerrors.StorageError):
                logger.warning("Storage error in command %s: %s", ctx.command, error)
            return await ctx.channel.send(embed=error.embed)
        else:
            logger.error("Unhandled error in command %s", ctx.command, exc_info=error)

    async def close(self):
        cog = self.get_cog("Reminders")
        if cog is not None:
            await cog.scheduler.shutdown()
        failed = await self.store.flush()
        if failed:
            logger.error("%s guilds could not be saved on shutdown", failed)
        await super().close()


if __name__ == "__main__":
    uptime = int(datetime.now().timestamp())
    asyncio.run(run(uptime))
