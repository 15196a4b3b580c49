import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

from levelcord.bot.cogs import level_cmds
from levelcord.datatypes.leveling_datatypes import LeaderboardEntry, UserLevelStats


def make_user(user_id=10, name="alice"):
    return SimpleNamespace(
        id=user_id,
        name=name,
        mention=f"<@{user_id}>",
        display_avatar=SimpleNamespace(url="https://cdn.example/avatar.png"),
    )


def make_ctx(user=None, guild=None):
    ctx = MagicMock()
    ctx.user = user or make_user()
    ctx.guild_id = 1
    ctx.guild = guild or MagicMock()
    ctx.defer = AsyncMock()
    ctx.respond = AsyncMock()
    ctx.send_followup = AsyncMock()
    return ctx


def make_cog(page_size=10):
    service = MagicMock()
    service.config = SimpleNamespace(leaderboard_page_size=page_size)
    return level_cmds.LevelCog(MagicMock(), service), service


def test_setup_registers_cog():
    captured = {}
    fake_bot = SimpleNamespace(add_cog=lambda cog: captured.setdefault("cog", cog))

    level_cmds.setup(fake_bot, MagicMock())

    assert isinstance(captured["cog"], level_cmds.LevelCog)


@pytest.mark.asyncio
async def test_level_shows_stats_embed():
    cog, service = make_cog()
    service.get_user_stats = AsyncMock(
        return_value=UserLevelStats(user_id=10, xp=450, level=2, xp_to_next_level=453, rank=3)
    )
    ctx = make_ctx()

    await level_cmds.LevelCog.level.callback(cog, ctx, None)

    service.get_user_stats.assert_awaited_once_with(1, 10)
    embed = ctx.send_followup.call_args.kwargs["embed"]
    assert embed.title == "Your Level Stats"
    fields = {field.name: field.value for field in embed.fields}
    assert fields == {"Level": "2", "Total XP": "450", "Rank": "#3", "XP to Next Level": "453"}


@pytest.mark.asyncio
async def test_level_for_other_user_without_xp():
    cog, service = make_cog()
    service.get_user_stats = AsyncMock(return_value=None)
    ctx = make_ctx()

    await level_cmds.LevelCog.level.callback(cog, ctx, make_user(20, "bob"))

    ctx.send_followup.assert_awaited_once_with("bob doesn't have any XP yet.")


@pytest.mark.asyncio
async def test_level_without_xp_for_self():
    cog, service = make_cog()
    service.get_user_stats = AsyncMock(return_value=None)
    ctx = make_ctx()

    await level_cmds.LevelCog.level.callback(cog, ctx, None)

    ctx.send_followup.assert_awaited_once_with("You don't have any XP yet. Start chatting to earn some!")


@pytest.mark.asyncio
async def test_level_reports_errors():
    cog, service = make_cog()
    service.get_user_stats = AsyncMock(side_effect=RuntimeError("offline"))
    ctx = make_ctx()

    await level_cmds.LevelCog.level.callback(cog, ctx, None)

    ctx.send_followup.assert_awaited_once_with("Sorry, there was an error fetching level data.")


@pytest.mark.asyncio
async def test_levels_renders_leaderboard_with_unknown_users():
    cog, service = make_cog(page_size=2)
    service.leaderboard = AsyncMock(
        return_value=(
            [LeaderboardEntry(rank=3, user_id=1, xp=500, level=2), LeaderboardEntry(rank=4, user_id=2, xp=90, level=0)],
            3,
        )
    )
    guild = MagicMock()
    guild.name = "Test Guild"
    guild.get_member = MagicMock(side_effect=lambda uid: make_user(uid) if uid == 1 else None)
    guild.fetch_member = AsyncMock(
        side_effect=discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Member")
    )
    ctx = make_ctx(guild=guild)

    await level_cmds.LevelCog.levels.callback(cog, ctx, 2)

    service.leaderboard.assert_awaited_once_with(1, 2)
    embed = ctx.send_followup.call_args.kwargs["embed"]
    assert embed.title == "Test Guild - Level Leaderboard"
    assert embed.description == (
        "**3.** <@1> - Level 2 (500 XP)\n"
        "**4.** Unknown User - Level 0 (90 XP)"
    )
    assert embed.footer.text == "Page 2/2 • Total Users: 3"


@pytest.mark.asyncio
async def test_levels_empty_guild():
    cog, service = make_cog()
    service.leaderboard = AsyncMock(return_value=([], 0))
    ctx = make_ctx()

    await level_cmds.LevelCog.levels.callback(cog, ctx, 1)

    ctx.send_followup.assert_awaited_once_with("No one has earned XP in this server yet.")


@pytest.mark.asyncio
async def test_ping():
    cog, _ = make_cog()
    ctx = make_ctx()

    await level_cmds.LevelCog.ping.callback(cog, ctx)

    ctx.respond.assert_awaited_once_with("Pong!")
