"""
Leveling administration commands.

All subcommands live under ``/leveladmin``, require the Manage Server
permission and reply ephemerally so configuration is not leaked in public
channels.

Quick usage example
    # In your bot setup code
    from levelcord.bot.cogs import level_admin_cmds
    level_admin_cmds.setup(bot, leveling_service)
"""

import discord
from discord import Option
from discord.ext import commands

from levelcord.datatypes.leveling_datatypes import DEFAULT_XP_COOLDOWN, DEFAULT_XP_PER_MESSAGE, MemberRoles
from levelcord.leveling.leveling_service import LevelingService
from levelcord.util.discord_utils import bot_can_assign_role, has_permissions
from levelcord.util.logger import get_logger

logger = get_logger("level_admin_cog")


class LevelAdminCog(commands.Cog):
    """Guild-level configuration of the leveling system."""

    leveladmin = discord.SlashCommandGroup("leveladmin", "Manage the server leveling system")

    def __init__(self, discord_bot_instance, leveling_service: LevelingService):
        self.bot = discord_bot_instance
        self.leveling_service = leveling_service
        logger.info("Level admin cog loaded")

    async def _check_access(self, ctx: discord.ApplicationContext) -> bool:
        """Defer ephemerally and verify guild context and permission."""
        await ctx.defer(ephemeral=True)
        if not ctx.guild_id:
            await ctx.send_followup("This command can only be used in a server.")
            return False
        if not has_permissions(ctx, manage_guild=True):
            await ctx.send_followup("You need the Manage Server permission to configure leveling.")
            return False
        return True

    @leveladmin.command(name="setup", description="Configure the leveling system")
    async def setup_leveling(
        self,
        ctx: discord.ApplicationContext,
        notification_channel: Option(discord.TextChannel, "Channel for level-up notifications", required=True),  # type: ignore
        xp_per_message: Option(int, "Base XP rewarded per message (default: 20)", min_value=1, max_value=100, default=DEFAULT_XP_PER_MESSAGE),  # type: ignore
        xp_cooldown: Option(int, "Seconds between XP rewards (default: 60)", min_value=10, max_value=600, default=DEFAULT_XP_COOLDOWN),  # type: ignore
    ) -> None:
        if not await self._check_access(ctx):
            return
        try:
            await self.leveling_service.configure(ctx.guild_id, notification_channel.id, xp_per_message, xp_cooldown)
        except Exception as exc:
            logger.exception("Error setting up leveling for guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup("❌ Failed to set up the leveling system.")
            return

        await ctx.send_followup(
            "✅ Leveling system configured successfully:\n"
            f"• Level-up notifications will be sent to {notification_channel.mention}\n"
            f"• Base XP per message: {xp_per_message} (varies ±25%)\n"
            f"• XP cooldown: {xp_cooldown} seconds"
        )

    async def _toggle(self, ctx: discord.ApplicationContext, enable: bool) -> None:
        if not await self._check_access(ctx):
            return
        state = "enable" if enable else "disable"
        try:
            configured = await self.leveling_service.set_enabled(ctx.guild_id, enable)
        except Exception as exc:
            logger.exception("Error trying to %s leveling for guild %s: %s", state, ctx.guild_id, exc)
            await ctx.send_followup(f"❌ Failed to {state} the leveling system.")
            return

        if not configured:
            await ctx.send_followup("❌ Please use `/leveladmin setup` first to configure the leveling system.")
            return
        await ctx.send_followup(f"✅ Leveling system {state}d.")

    @leveladmin.command(name="enable", description="Enable the leveling system")
    async def enable(self, ctx: discord.ApplicationContext) -> None:
        await self._toggle(ctx, True)

    @leveladmin.command(name="disable", description="Disable the leveling system")
    async def disable(self, ctx: discord.ApplicationContext) -> None:
        await self._toggle(ctx, False)

    @leveladmin.command(name="setreward", description="Set a role reward for reaching a level")
    async def setreward(
        self,
        ctx: discord.ApplicationContext,
        level: Option(int, "Level required to earn this role", min_value=1, required=True),  # type: ignore
        role: Option(discord.Role, "Role to award", required=True),  # type: ignore
    ) -> None:
        if not await self._check_access(ctx):
            return
        if not bot_can_assign_role(role, ctx.guild.me):
            await ctx.send_followup(
                "❌ I cannot assign this role. It may be managed by an integration or higher than my highest role."
            )
            return
        try:
            await self.leveling_service.set_reward(ctx.guild_id, level, role.id)
        except Exception as exc:
            logger.exception("Error setting level reward in guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup("❌ Failed to set level reward.")
            return
        await ctx.send_followup(f"✅ Role reward set: {role.mention} will be awarded at level {level}")

    @leveladmin.command(name="removereward", description="Remove a level role reward")
    async def removereward(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role to remove from rewards", required=True),  # type: ignore
    ) -> None:
        if not await self._check_access(ctx):
            return
        try:
            removed = await self.leveling_service.remove_reward(ctx.guild_id, role.id)
        except Exception as exc:
            logger.exception("Error removing level reward in guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup("❌ Failed to remove level reward.")
            return

        if not removed:
            await ctx.send_followup(f"❌ No level reward found for the role {role.name}.")
            return
        await ctx.send_followup(f"✅ Level reward removed for role {role.name}")

    @leveladmin.command(name="rewards", description="List the configured level role rewards")
    async def rewards(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_access(ctx):
            return
        rewards = await self.leveling_service.list_rewards(ctx.guild_id)
        if not rewards:
            await ctx.send_followup("No level rewards are configured for this server.")
            return
        lines = [f"• Level {reward.level}: <@&{reward.role_id}>" for reward in rewards]
        await ctx.send_followup("**Level rewards**\n" + "\n".join(lines))

    @leveladmin.command(name="resetuser", description="Reset a user's level data")
    async def resetuser(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "User to reset", required=True),  # type: ignore
    ) -> None:
        if not await self._check_access(ctx):
            return
        try:
            reset = await self.leveling_service.reset_user(ctx.guild_id, user.id)
        except Exception as exc:
            logger.exception("Error resetting level data for user %s: %s", user.id, exc)
            await ctx.send_followup("❌ Failed to reset user level data.")
            return

        if not reset:
            await ctx.send_followup(f"❌ {user.name} doesn't have any level data to reset.")
            return
        await ctx.send_followup(f"✅ Level data reset for {user.name}")

    @leveladmin.command(name="setlevel", description="Set a user's level manually")
    async def setlevel(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "User to set level for", required=True),  # type: ignore
        level: Option(int, "Level to set for the user", min_value=1, required=True),  # type: ignore
    ) -> None:
        if not await self._check_access(ctx):
            return
        try:
            xp = await self.leveling_service.set_user_level(ctx.guild_id, user.id, level)
        except Exception as exc:
            logger.exception("Error setting level for user %s: %s", user.id, exc)
            await ctx.send_followup("❌ Failed to set user level.")
            return
        await ctx.send_followup(f"✅ {user.name}'s level has been set to {level} with {xp} XP.")

    @leveladmin.command(name="sync", description="Sync user roles with their levels")
    async def sync(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_access(ctx):
            return
        try:
            report = await self.leveling_service.sync_roles(ctx.guild_id)
        except Exception as exc:
            logger.exception("Error syncing roles in guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup("❌ Failed to sync user roles.")
            return

        if report is None:
            await ctx.send_followup("❌ No level data found for any users.")
            return
        await ctx.send_followup(
            "✅ Role sync complete:\n"
            f"• Successfully synced: {report.succeeded} users\n"
            f"• Failed to sync: {report.failed} users"
        )

    @leveladmin.command(name="migrateroles", description="Grant XP to users based on level roles they already have")
    async def migrateroles(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_access(ctx):
            return
        members = [
            MemberRoles(
                user_id=member.id,
                role_ids=frozenset(role.id for role in member.roles),
                is_bot=member.bot,
            )
            for member in ctx.guild.members
        ]
        try:
            report = await self.leveling_service.migrate_roles(ctx.guild_id, members)
        except Exception as exc:
            logger.exception("Error migrating roles to XP in guild %s: %s", ctx.guild_id, exc)
            await ctx.send_followup("❌ Failed to migrate roles to XP.")
            return

        if report is None:
            await ctx.send_followup("❌ No level rewards defined. Please set up level rewards first.")
            return
        await ctx.send_followup(
            "✅ Role migration complete:\n"
            f"• Users updated: {report.updated}\n"
            f"• Users skipped: {report.skipped} (bots or no level roles)\n"
            f"• Errors: {report.errors}"
        )


def setup(discord_bot_instance, leveling_service: LevelingService) -> None:
    """Register the LevelAdminCog with the bot."""
    discord_bot_instance.add_cog(LevelAdminCog(discord_bot_instance, leveling_service))
