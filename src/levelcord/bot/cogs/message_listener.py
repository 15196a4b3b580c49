"""Message listener Cog for Levelcord.

Every guild message from a human member is handed to the leveling service,
which decides whether it earns XP.
"""

import discord
from discord.ext import commands

from levelcord.leveling.leveling_service import LevelingService
from levelcord.util.logger import get_logger
from levelcord.util import discord_utils

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for awarding XP on message creation."""

    def __init__(self, discord_bot_instance, leveling_service: LevelingService):
        self.bot = discord_bot_instance
        self.leveling_service = leveling_service
        logger.info("Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        """Award XP for a guild message. DMs and bot authors are ignored."""
        if message.guild is None or discord_utils.is_ignored_author(message.author):
            return

        try:
            await self.leveling_service.add_xp(message.author.id, message.guild.id)
        except Exception as exc:
            logger.exception(
                "Failed to add XP for user %s in guild %s: %s",
                message.author.id, message.guild.id, exc,
            )


def setup(discord_bot_instance, leveling_service: LevelingService):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, leveling_service))
