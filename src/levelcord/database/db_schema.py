"""
Database schema initialization for the leveling collections.

Every collection table carries an ``id INTEGER PRIMARY KEY`` that the
record store exposes as a string record id, plus ``created`` / ``updated``
unix timestamps maintained by the store.
"""

import aiosqlite
from levelcord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables, indexes and version marker used by Levelcord."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all database tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create the three leveling collections."""
        # One row per guild; uniqueness is enforced here
        await db.execute("""
            CREATE TABLE IF NOT EXISTS level_settings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL UNIQUE,
                enabled INTEGER NOT NULL DEFAULT 1,
                xp_per_message INTEGER NOT NULL DEFAULT 20,
                xp_cooldown INTEGER NOT NULL DEFAULT 60,
                notification_channel_id INTEGER,
                created REAL NOT NULL,
                updated REAL NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_levels (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                xp INTEGER NOT NULL DEFAULT 0,
                level INTEGER NOT NULL DEFAULT 0,
                last_message_time REAL NOT NULL DEFAULT 0,
                created REAL NOT NULL,
                updated REAL NOT NULL
            )
        """)

        # (guild_id, level) uniqueness is left to the admin commands
        await db.execute("""
            CREATE TABLE IF NOT EXISTS level_rewards (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                level INTEGER NOT NULL,
                role_id INTEGER NOT NULL,
                created REAL NOT NULL,
                updated REAL NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_user_levels_member_unique ON user_levels(guild_id, user_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_user_levels_leaderboard ON user_levels(guild_id, xp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_level_rewards_guild ON level_rewards(guild_id, level)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
