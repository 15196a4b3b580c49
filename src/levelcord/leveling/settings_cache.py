"""
Time-boxed cache of per-guild leveling settings.

Settings are read on every chat message but change only through admin
commands, so they are served from memory for ``ttl_seconds`` and re-read
from the record store afterwards. Admin commands call :meth:`invalidate`
after writing so changes show up immediately.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

from levelcord.database.record_store import RecordStore
from levelcord.datatypes.leveling_datatypes import LevelSettings
from levelcord.util.logger import get_logger

logger = get_logger("settings_cache")

SETTINGS_COLLECTION = "level_settings"


class SettingsCache:
    """
    TTL cache of :class:`LevelSettings` keyed by guild id.

    Guilds without a settings row are cached as ``None`` too, so unconfigured
    guilds do not cost a query per message. There is no locking: two
    concurrent misses both read the store and the later write wins, which is
    harmless because both read the same row.
    """

    def __init__(
        self,
        store: RecordStore,
        ttl_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[int, Tuple[float, Optional[LevelSettings]]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, guild_id: int) -> bool:
        return guild_id in self._cache

    async def get_settings(self, guild_id: int, force_refresh: bool = False) -> Optional[LevelSettings]:
        """
        Return the guild's settings, or ``None`` when leveling was never set up.

        Args:
            guild_id: Guild to look up.
            force_refresh: Skip the cache and re-read the store.

        Raises:
            RecordStoreError: If the store read fails.
        """
        if not force_refresh:
            cached = self._cache.get(guild_id)
            if cached is not None:
                timestamp, settings = cached
                if self._clock() - timestamp < self._ttl_seconds:
                    return settings
                logger.debug("[SETTINGS CACHE] Expired entry for guild %s", guild_id)

        record = await self._store.first(SETTINGS_COLLECTION, {"guild_id": guild_id})
        settings = LevelSettings.from_record(record) if record else None
        self._cache[guild_id] = (self._clock(), settings)
        logger.debug("[SETTINGS CACHE] Loaded settings for guild %s (found=%s)", guild_id, settings is not None)
        return settings

    def invalidate(self, guild_id: int) -> None:
        """Drop the cached settings for ``guild_id``."""
        if self._cache.pop(guild_id, None) is not None:
            logger.debug("[SETTINGS CACHE] Invalidated guild %s", guild_id)

    def clear(self) -> None:
        self._cache.clear()
