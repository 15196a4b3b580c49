"""
Embeds for the member-facing leveling commands.
"""

import datetime
from typing import Iterable, Optional

import discord

from levelcord.datatypes.leveling_datatypes import UserLevelStats

LEVEL_COLOR = discord.Color(0x4CAF50)


def build_level_embed(
    stats: UserLevelStats,
    user: discord.abc.User,
    *,
    own_level: bool,
) -> discord.Embed:
    """
    Create the ``/level`` stats card.

    Args:
        stats: Level, XP and rank of the member.
        user: Member the stats belong to, used for the title and thumbnail.
        own_level: Whether the invoker is looking at their own stats.

    Returns:
        discord.Embed: Card with level, total XP, rank and XP to next level.
    """
    title = "Your Level Stats" if own_level else f"{user.name}'s Level Stats"
    rank = f"#{stats.rank}" if stats.rank is not None else "Unranked"

    embed = discord.Embed(title=title, color=LEVEL_COLOR, timestamp=datetime.datetime.now(datetime.timezone.utc))
    embed.set_thumbnail(url=user.display_avatar.url)
    embed.add_field(name="Level", value=str(stats.level), inline=True)
    embed.add_field(name="Total XP", value=str(stats.xp), inline=True)
    embed.add_field(name="Rank", value=rank, inline=True)
    embed.add_field(name="XP to Next Level", value=str(stats.xp_to_next_level), inline=False)
    embed.set_footer(text="Keep chatting to earn more XP!")
    return embed


def leaderboard_line(rank: int, display: Optional[str], level: int, xp: int) -> str:
    return f"**{rank}.** {display or 'Unknown User'} - Level {level} ({xp} XP)"


def build_leaderboard_embed(
    guild_name: str,
    lines: Iterable[str],
    page: int,
    max_pages: int,
    total: int,
) -> discord.Embed:
    embed = discord.Embed(
        title=f"{guild_name} - Level Leaderboard",
        description="\n".join(lines),
        color=LEVEL_COLOR,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.set_footer(text=f"Page {page}/{max_pages} • Total Users: {total}")
    return embed
