"""
Chat platform operations used by the leveling subsystem.

The leveling service only needs to send a message, look up a member and
grant roles. :class:`ChatGateway` names that surface so tests can swap in a
fake, and :class:`DiscordChatGateway` implements it over a py-cord bot.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import discord

from levelcord.errors import RoleGrantError
from levelcord.util.logger import get_logger

logger = get_logger("chat_gateway")


class ChatGateway(Protocol):
    async def send_message(self, channel_id: int, content: str) -> None: ...

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[Any]: ...

    def member_has_role(self, member: Any, role_id: int) -> bool: ...

    async def grant_role(self, member: Any, role_id: int, reason: Optional[str] = None) -> None: ...

    def mention(self, member: Any) -> str: ...


class DiscordChatGateway:
    """:class:`ChatGateway` backed by a ``discord.Bot``. Cached objects are preferred over API calls."""

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    async def send_message(self, channel_id: int, content: str) -> None:
        channel = self.bot.get_channel(channel_id) or await self.bot.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise TypeError(f"Channel {channel_id} cannot receive messages")
        await channel.send(content)

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[discord.Member]:
        """Return the member, or ``None`` if they left or the guild is unavailable."""
        try:
            guild = self.bot.get_guild(guild_id) or await self.bot.fetch_guild(guild_id)
            return guild.get_member(user_id) or await guild.fetch_member(user_id)
        except discord.NotFound:
            logger.debug("[GATEWAY] Member %s not found in guild %s", user_id, guild_id)
            return None

    def member_has_role(self, member: discord.Member, role_id: int) -> bool:
        return member.get_role(role_id) is not None

    async def grant_role(self, member: discord.Member, role_id: int, reason: Optional[str] = None) -> None:
        role = member.guild.get_role(role_id)
        if role is None:
            raise RoleGrantError(f"Role {role_id} no longer exists in guild {member.guild.id}")
        try:
            await member.add_roles(role, reason=reason)
        except discord.Forbidden as exc:
            raise RoleGrantError(f"Missing permission to grant role {role.name}") from exc

    def mention(self, member: discord.Member) -> str:
        return member.mention
