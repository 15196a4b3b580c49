"""
Member-facing leveling commands.

- /level: level card for yourself or another member
- /levels: paginated server leaderboard
- /ping: liveness check

Both leveling commands flush queued XP first so they show what members
have actually earned, not what has reached the database so far.
"""

import math
from typing import Optional

import discord
from discord import Option
from discord.ext import commands

from levelcord.leveling.leveling_service import LevelingService
from levelcord.ui.level_embeds import build_leaderboard_embed, build_level_embed, leaderboard_line
from levelcord.util.logger import get_logger

logger = get_logger("level_commands")


class LevelCog(commands.Cog):
    """Slash commands for checking levels and the leaderboard."""

    def __init__(self, discord_bot_instance, leveling_service: LevelingService):
        self.bot = discord_bot_instance
        self.leveling_service = leveling_service
        logger.info("Level cog loaded")

    @commands.slash_command(name="level", description="Check your current level and XP")
    async def level(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to check (defaults to yourself)", required=False, default=None),  # type: ignore
    ) -> None:
        await ctx.defer()

        target = user or ctx.user
        own_level = target.id == ctx.user.id

        try:
            stats = await self.leveling_service.get_user_stats(ctx.guild_id, target.id)
        except Exception as exc:
            logger.exception("Error getting level data for user %s in guild %s: %s", target.id, ctx.guild_id, exc)
            await ctx.send_followup("Sorry, there was an error fetching level data.")
            return

        if stats is None:
            if own_level:
                await ctx.send_followup("You don't have any XP yet. Start chatting to earn some!")
            else:
                await ctx.send_followup(f"{target.name} doesn't have any XP yet.")
            return

        await ctx.send_followup(embed=build_level_embed(stats, target, own_level=own_level))

    async def _member_mention(self, guild: discord.Guild, user_id: int) -> Optional[str]:
        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.HTTPException:
                return None
        return member.mention

    @commands.slash_command(name="levels", description="View the server level leaderboard")
    async def levels(
        self,
        ctx: discord.ApplicationContext,
        page: Option(int, "Leaderboard page number", min_value=1, required=False, default=1),  # type: ignore
    ) -> None:
        await ctx.defer()

        try:
            entries, total = await self.leveling_service.leaderboard(ctx.guild_id, page)
        except Exception as exc:
            logger.exception("Error fetching leaderboard for guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup("Sorry, there was an error getting the leaderboard.")
            return

        if total == 0:
            await ctx.send_followup("No one has earned XP in this server yet.")
            return

        lines = [
            leaderboard_line(entry.rank, await self._member_mention(ctx.guild, entry.user_id), entry.level, entry.xp)
            for entry in entries
        ]
        max_pages = math.ceil(total / self.leveling_service.config.leaderboard_page_size)
        embed = build_leaderboard_embed(ctx.guild.name, lines, page, max_pages, total)
        await ctx.send_followup(embed=embed)

    @commands.slash_command(name="ping", description="Replies with Pong!")
    async def ping(self, ctx: discord.ApplicationContext) -> None:
        await ctx.respond("Pong!")


def setup(discord_bot_instance, leveling_service: LevelingService) -> None:
    """Register the LevelCog with the bot."""
    discord_bot_instance.add_cog(LevelCog(discord_bot_instance, leveling_service))
