"""
Levelcord
=========

A Discord bot that rewards chat activity with XP, announces level-ups,
grants role rewards and shows per-server leaderboards.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.
    Resolution order:
    1. LEVELCORD_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("LEVELCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from levelcord.configuration.app_configuration import app_config
from levelcord.database.record_store import RecordStore
from levelcord.leveling.gateway import DiscordChatGateway
from levelcord.leveling.leveling_service import LevelingService
from levelcord.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Returns
    -------
    str
        Discord bot token extracted from the loaded environment.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Construct the Discord intents the leveling features rely on.

    Message content is not read, but ``members`` is needed for role rewards
    and the role migration scan.
    """
    intents = discord.Intents.default()
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, leveling_service: LevelingService) -> None:
    """Register all operational cogs with the provided Discord bot instance."""
    from levelcord.bot.cogs import events_listener, level_admin_cmds, level_cmds, message_listener

    events_listener.setup(discord_bot_instance)
    message_listener.setup(discord_bot_instance, leveling_service)
    level_cmds.setup(discord_bot_instance, leveling_service)
    level_admin_cmds.setup(discord_bot_instance, leveling_service)

    logger.info("All cogs loaded successfully.")


def create_bot() -> discord.Bot:
    """Instantiate the Discord bot. Cogs are registered once the service exists."""
    return discord.Bot(intents=build_intents())


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and handle lifecycle logging around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(
    bot: discord.Bot | None,
    leveling_service: LevelingService | None,
    store: RecordStore,
) -> None:
    """Stop the bot, flush queued XP and close the database, in that order."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord client: %s", exc)

    if leveling_service is not None:
        try:
            await leveling_service.shutdown()
        except Exception as exc:
            logger.exception("Error during leveling service shutdown: %s", exc)

    try:
        await store.close()
    except Exception as exc:
        logger.exception("Error while closing the database: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database, leveling service and bot, returning an exit code."""
    token = load_environment()
    store = RecordStore()

    try:
        logger.info("Initializing database at %s", app_config.database_path)
        await store.initialize(app_config.database_path)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    bot = None
    leveling_service = None
    exit_code = 0
    try:
        bot = create_bot()
        leveling_service = LevelingService(store, DiscordChatGateway(bot), app_config.leveling)
        load_cogs(bot, leveling_service)
        leveling_service.start()
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, leveling_service, store)

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code."""
    sys.excepthook = handle_exception
    logger.info("Starting Levelcord…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        return code if isinstance(code, int) else 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    print(f"Exited with code: {main()}")
