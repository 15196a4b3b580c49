import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
from discord.ext import commands

from levelcord.bot.cogs import events_listener


def test_setup_registers_cog():
    captured = {}
    fake_bot = SimpleNamespace(add_cog=lambda cog: captured.setdefault("cog", cog))

    events_listener.setup(fake_bot)

    assert isinstance(captured["cog"], events_listener.EventsListenerCog)


@pytest.mark.asyncio
async def test_on_ready_with_and_without_user():
    ready_bot = SimpleNamespace(user=SimpleNamespace(id=1), guilds=[object(), object()])
    await events_listener.EventsListenerCog(ready_bot).on_ready()

    partial_bot = SimpleNamespace(user=None, guilds=[])
    await events_listener.EventsListenerCog(partial_bot).on_ready()


@pytest.mark.asyncio
async def test_command_error_replies_ephemerally():
    cog = events_listener.EventsListenerCog(SimpleNamespace())
    ctx = MagicMock()
    ctx.command.name = "level"
    ctx.respond = AsyncMock()

    await cog.on_application_command_error(ctx, RuntimeError("boom"))

    ctx.respond.assert_awaited_once_with("A :bug: showed up while running this command.", ephemeral=True)


@pytest.mark.asyncio
async def test_command_error_falls_back_to_followup():
    cog = events_listener.EventsListenerCog(SimpleNamespace())
    ctx = MagicMock()
    ctx.respond = AsyncMock(side_effect=discord.InteractionResponded(MagicMock()))
    ctx.followup.send = AsyncMock()

    await cog.on_application_command_error(ctx, RuntimeError("boom"))

    ctx.followup.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_unknown_commands_are_ignored():
    cog = events_listener.EventsListenerCog(SimpleNamespace())
    ctx = MagicMock()
    ctx.respond = AsyncMock()

    await cog.on_application_command_error(ctx, commands.CommandNotFound())

    ctx.respond.assert_not_awaited()
