import discord
from discord.ext.commands import CommandError


_EC = discord.Color.dark_red()


class ReminderError(CommandError):
    def __init__(self):
        super().__init__()
        self.embed = discord.Embed(title="An Error Occurred",
                                   description="An error occurred while performing operations on reminders",
                                   color=_EC)


class InvalidReminderIndex(ReminderError):
    def __init__(self, index: int, length: int):
        super().__init__()
        self.index = index
        self.length = length
        self.embed.title = "Invalid Reminder Index"
        if length:
            self.embed.description = (f"`{index}` is not a valid reminder index. Valid indices are `0` "
                                      f"through `{length - 1}`")
        else:
            self.embed.description = "You currently have no reminders scheduled"

    def __str__(self):
        return f"reminder index {self.index} out of range for {self.length} reminders"


class InvalidDelay(ReminderError):
    def __init__(self, argument: str):
        super().__init__()
        self.argument = argument
        self.embed.title = "Invalid Time"
        self.embed.description = (f"`{argument}` is not a valid delay. Try something like `10m`, `1h30m`, "
                                  "`2d`, `01:30:00` or `in 2 hours`")

    def __str__(self):
        return f"invalid reminder delay: {self.argument!r}"


class EmptyReminderText(ReminderError):
    def __init__(self):
        super().__init__()
        self.embed.title = "Empty Reminder"
        self.embed.description = "Your reminder must contain some text"

    def __str__(self):
        return "reminder text must not be empty"


class ReminderDeliveryError(ReminderError):
    """Error raised when a due reminder could not be sent to its channel

    Args:
        channel_id (int): channel the reminder was meant for
        reason (str): why the delivery failed
    """

    def __init__(self, channel_id: int, reason: str):
        super().__init__()
        self.channel_id = channel_id
        self.reason = reason
        self.embed.title = "Reminder Delivery Failed"
        self.embed.description = f"A reminder could not be delivered to <#{channel_id}>: {reason}"

    def __str__(self):
        return f"could not deliver reminder to channel {self.channel_id}: {self.reason}"


class StorageError(CommandError):
    pass


class GuildStorageError(StorageError):
    """Error raised when guild data cannot be read from or written to durable storage

    The in-memory copy of the guild stays authoritative and is saved again on the
    next mutation or scheduler scan.
    """

    def __init__(self, guild_id: int, operation: str = "save", reason: str = None):
        super().__init__()
        self.guild_id = guild_id
        self.operation = operation
        self.reason = reason
        self.embed = discord.Embed(title="Storage Error",
                                   description="Your change was applied, but it could not be saved yet. "
                                   "It will be saved again automatically",
                                   color=_EC)
        if operation == "load":
            self.embed.description = "This server's data could not be loaded right now. Please try again later"

    def __str__(self):
        msg = f"could not {self.operation} data for guild {self.guild_id}"
        return f"{msg}: {self.reason}" if self.reason else msg
