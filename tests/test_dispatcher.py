"""Tests for sending due reminders to Discord channels."""

from unittest.mock import AsyncMock, Mock

import discord
import pytest

from utils.dispatcher import ReminderDispatcher

from conftest import make_channel


def http_error(cls, status):
    return cls(Mock(status=status, reason=cls.__name__), "nope")


@pytest.mark.asyncio
async def test_deliver_sends_mention_and_embed(mock_discord_bot):
    dispatcher = ReminderDispatcher(mock_discord_bot)
    assert await dispatcher.deliver(555, "drink water", 1, 42) is True

    mock_discord_bot.get_channel.assert_called_once_with(555)
    mock_discord_bot.fetch_channel.assert_not_called()
    kwargs = mock_discord_bot.channel.send.await_args.kwargs
    assert kwargs["content"] == "<@42>"
    assert kwargs["embed"].description == "drink water"
    assert kwargs["embed"].title == "Reminder"


@pytest.mark.asyncio
async def test_deliver_fetches_uncached_channel(mock_discord_bot):
    mock_discord_bot.get_channel.return_value = None
    dispatcher = ReminderDispatcher(mock_discord_bot)
    assert await dispatcher.deliver(555, "hi", 1, 42) is True
    mock_discord_bot.fetch_channel.assert_awaited_once_with(555)
    mock_discord_bot.channel.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_deliver_reports_deleted_channel(mock_discord_bot):
    mock_discord_bot.get_channel.return_value = None
    mock_discord_bot.fetch_channel.side_effect = http_error(discord.NotFound, 404)
    dispatcher = ReminderDispatcher(mock_discord_bot)
    assert await dispatcher.deliver(555, "hi", 1, 42) is False


@pytest.mark.asyncio
async def test_deliver_reports_forbidden_send(mock_discord_bot):
    mock_discord_bot.channel.send.side_effect = http_error(discord.Forbidden, 403)
    dispatcher = ReminderDispatcher(mock_discord_bot)
    assert await dispatcher.deliver(555, "hi", 1, 42) is False


@pytest.mark.asyncio
async def test_deliver_refuses_channel_of_other_guild():
    bot = Mock()
    channel = make_channel(guild_id=2)
    bot.get_channel = Mock(return_value=channel)
    bot.fetch_channel = AsyncMock()
    dispatcher = ReminderDispatcher(bot)
    assert await dispatcher.deliver(555, "hi", 1, 42) is False
    channel.send.assert_not_awaited()
