import discord
from discord.ext import commands

from utils import globalcommands
from utils.converters import Delay
from utils.dispatcher import ReminderDispatcher
from utils.reminderops import create_reminder, delete_reminder, list_reminders
from utils.scheduler import ReminderScheduler

gcmds = globalcommands.GlobalCMDS()


class Reminders(commands.Cog):

    def __init__(self, bot: commands.AutoShardedBot):
        global gcmds
        self.bot = bot
        gcmds = globalcommands.GlobalCMDS(self.bot)
        self.tasks = []
        self.scheduler = ReminderScheduler(self.bot.store, ReminderDispatcher(self.bot),
                                           interval=gcmds.scan_interval)

    async def cog_load(self):
        self.tasks.append(self.bot.loop.create_task(self.init_reminders()))

    async def cog_unload(self):
        for task in self.tasks:
            task.cancel()
        await self.scheduler.shutdown()

    async def init_reminders(self):
        await self.bot.wait_until_ready()
        self.scheduler.start()

    async def send_remind_help(self, ctx) -> discord.Message:
        pfx = f"{ctx.prefix}remind"
        embed = discord.Embed(title="Reminders Help",
                              description=f"To use reminder commands, just do `{pfx} [option]`. Here is a list of "
                              "valid options",
                              color=discord.Color.blue())
        embed.add_field(name="Create",
                        value=f"Usage: `{pfx} [delay] [message]`\n"
                              f"Returns: Your reminder message in this channel once the delay has passed\n"
                              f"Aliases: `reminder`\n"
                              f"Special Cases: `[delay]` is relative, like `10m`, `1h30m`, `2d` or `01:30:00`. "
                              f"Natural language delays must be quoted, like `\"in 2 hours\"`",
                        inline=False)
        embed.add_field(name="List",
                        value=f"Usage: `{pfx} list`\n"
                              f"Returns: All your reminders in this server with their index\n"
                              f"Aliases: `-ls` `show`",
                        inline=False)
        embed.add_field(name="Delete",
                        value=f"Usage: `{pfx} delete [index]`\n"
                              f"Returns: A confirmation that the reminder was deleted\n"
                              f"Aliases: `-rm` `trash`\n"
                              f"Special Cases: Deleting a reminder shifts the index of every reminder after it, "
                              f"so list your reminders again before deleting another one",
                        inline=False)
        return await ctx.channel.send(embed=embed)

    async def no_reminders(self, ctx) -> discord.Message:
        embed = discord.Embed(title="No Reminders",
                              description=f"{ctx.author.mention}, you currently have no reminders scheduled",
                              color=discord.Color.blue())
        return await ctx.channel.send(embed=embed)

    @commands.group(invoke_without_command=True,
                    aliases=['reminder', 'reminders'],
                    desc="Sets a reminder",
                    usage="remind [delay] [message]")
    @commands.guild_only()
    async def remind(self, ctx, delay: Delay = None, *, message: str = None):
        if delay is None or not message:
            return await self.send_remind_help(ctx)

        reminder = await create_reminder(self.bot.store, ctx.guild.id, ctx.author.id, ctx.channel.id,
                                         delay, message)
        embed = discord.Embed(title="Reminder Successfully Created",
                              description=f"{ctx.author.mention}, your reminder will be dispatched to this channel "
                              f"{discord.utils.format_dt(reminder.due_at, 'R')}",
                              color=discord.Color.blue())
        return await ctx.channel.send(embed=embed)

    @remind.command(name="list", aliases=['-ls', 'show'])
    @commands.guild_only()
    async def remind_list(self, ctx):
        entries = await list_reminders(self.bot.store, ctx.guild.id, ctx.author.id)
        if not entries:
            return await self.no_reminders(ctx)

        description = "\n".join(f"**[{index}]** `{reminder.text}` "
                                f"({discord.utils.format_dt(reminder.due_at)}) in <#{reminder.channel_id}>"
                                for index, reminder in entries)
        embed = discord.Embed(title=f"Reminders for {ctx.author.display_name}",
                              description=description,
                              color=discord.Color.blue())
        embed.set_footer(text=f"{len(entries)} reminder{'s' if len(entries) != 1 else ''} scheduled")
        return await ctx.channel.send(embed=embed)

    @remind.command(name="delete", aliases=['-rm', 'trash'])
    @commands.guild_only()
    async def remind_delete(self, ctx, index: int):
        reminder = await delete_reminder(self.bot.store, ctx.guild.id, ctx.author.id, index)
        embed = discord.Embed(title="Reminder Successfully Deleted",
                              description=f"{ctx.author.mention}, your reminder `{reminder.text}` was deleted",
                              color=discord.Color.blue())
        return await ctx.channel.send(embed=embed)


async def setup(bot):
    await bot.add_cog(Reminders(bot))
