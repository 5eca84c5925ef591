"""Pytest configuration and fixtures."""

import copy
from unittest.mock import AsyncMock, Mock

import pytest

from utils.customerrors import GuildStorageError
from utils.guildstore import GuildStore


class MemoryBackend:
    """Backend keeping saved documents in a dict, with switchable failures."""

    def __init__(self, documents=None):
        self.documents = documents if documents is not None else {}
        self.loads = []
        self.saves = []
        self.fail_loads = False
        self.fail_saves = False

    async def init(self):
        pass

    async def load(self, guild_id):
        self.loads.append(guild_id)
        if self.fail_loads:
            raise GuildStorageError(guild_id, "load", "backend offline")
        document = self.documents.get(guild_id)
        return copy.deepcopy(document) if document is not None else None

    async def save(self, guild_id, payload):
        self.saves.append(guild_id)
        if self.fail_saves:
            raise GuildStorageError(guild_id, "save", "backend offline")
        self.documents[guild_id] = copy.deepcopy(payload)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return GuildStore(backend)


def make_channel(guild_id, channel_id=555):
    channel = Mock()
    channel.id = channel_id
    channel.guild.id = guild_id
    channel.guild.get_member = Mock(return_value=None)
    channel.send = AsyncMock()
    return channel


@pytest.fixture
def mock_discord_bot():
    """Create a mock Discord bot whose channels all belong to guild 1."""
    bot = Mock()
    bot.channel = make_channel(1)
    bot.get_channel = Mock(return_value=bot.channel)
    bot.fetch_channel = AsyncMock(return_value=bot.channel)
    return bot


class RecordingDispatcher:
    """Dispatcher double that records every delivery."""

    def __init__(self, succeed=True):
        self.delivered = []
        self.succeed = succeed

    async def deliver(self, channel_id, text, guild_id, member_id):
        self.delivered.append((channel_id, text, guild_id, member_id))
        return self.succeed


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
