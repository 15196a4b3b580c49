"""
Read-through cache of per-member XP entries.

Entries are loaded from ``user_levels`` on first use and then mutated in
place by the leveling service; persistence is handled separately by the
write-behind flusher. Entries older than the TTL are re-read on the next
lookup and removed by :meth:`XpLedgerCache.sweep`, except while they hold
changes that have not reached the store yet.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterator, Optional

from levelcord.database.record_store import RecordStore
from levelcord.datatypes.leveling_datatypes import CachedXpEntry, LedgerKey, UserXpRecord
from levelcord.leveling.level_curve import level_from_xp
from levelcord.util.logger import get_logger

logger = get_logger("xp_cache")

USER_LEVELS_COLLECTION = "user_levels"


class XpLedgerCache:
    """
    In-memory map of ``(guild_id, user_id)`` to :class:`CachedXpEntry`.

    Args:
        store: Record store holding ``user_levels``.
        ttl_seconds: Age after which a clean entry is considered stale.
        clock: Time source in unix seconds.
        is_pending: Tells whether the flusher still holds an entry; pending
            entries are never evicted.
    """

    def __init__(
        self,
        store: RecordStore,
        ttl_seconds: float = 30 * 60,
        clock: Callable[[], float] = time.time,
        is_pending: Optional[Callable[[LedgerKey], bool]] = None,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._is_pending = is_pending or (lambda key: False)
        self._entries: Dict[LedgerKey, CachedXpEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: LedgerKey) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[CachedXpEntry]:
        return iter(list(self._entries.values()))

    def peek(self, guild_id: int, user_id: int) -> Optional[CachedXpEntry]:
        """Return the cached entry without touching the store."""
        return self._entries.get((guild_id, user_id))

    def _is_expired(self, entry: CachedXpEntry, now: float) -> bool:
        return now - entry.cache_time > self._ttl_seconds

    def _is_protected(self, entry: CachedXpEntry) -> bool:
        return entry.is_dirty or self._is_pending(entry.key)

    async def get_entry(self, guild_id: int, user_id: int) -> CachedXpEntry:
        """
        Return the live entry for a member, loading it on a miss.

        A stale entry with unsaved changes is kept as-is: the in-memory copy is
        newer than the store until the flusher writes it.

        Raises:
            RecordStoreError: If the store read fails.
        """
        key = (guild_id, user_id)
        now = self._clock()
        entry = self._entries.get(key)

        if entry is not None:
            if not self._is_expired(entry, now) or self._is_protected(entry):
                return entry
            logger.debug("[XP CACHE] Entry for user %s in guild %s expired, reloading", user_id, guild_id)

        loaded = await self._load(guild_id, user_id)

        # Another lookup for the same member may have filled the slot during the read
        current = self._entries.get(key)
        if current is not None:
            if not self._is_expired(current, self._clock()) or self._is_protected(current):
                return current

        self._entries[key] = loaded
        return loaded

    async def _load(self, guild_id: int, user_id: int) -> CachedXpEntry:
        record = await self._store.first(USER_LEVELS_COLLECTION, {"guild_id": guild_id, "user_id": user_id})
        now = self._clock()

        if record is None:
            return CachedXpEntry(guild_id=guild_id, user_id=user_id, cache_time=now)

        stored = UserXpRecord.from_record(record)
        return CachedXpEntry(
            guild_id=guild_id,
            user_id=user_id,
            xp=stored.xp,
            level=level_from_xp(stored.xp),
            last_message_time=stored.last_message_time,
            record_id=stored.record_id,
            cache_time=now,
            last_db_sync=now,
        )

    def evict(self, guild_id: int, user_id: int) -> Optional[CachedXpEntry]:
        """Drop an entry unconditionally (used after admin edits)."""
        return self._entries.pop((guild_id, user_id), None)

    def evict_guild(self, guild_id: int) -> int:
        keys = [key for key in self._entries if key[0] == guild_id]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def sweep(self) -> int:
        """Remove stale entries that have nothing left to persist. Returns the count."""
        now = self._clock()
        stale = [
            key for key, entry in self._entries.items()
            if self._is_expired(entry, now) and not self._is_protected(entry)
        ]
        for key in stale:
            del self._entries[key]

        if stale:
            logger.debug("[XP CACHE] Swept %d stale entries (%d remain)", len(stale), len(self._entries))
        return len(stale)
