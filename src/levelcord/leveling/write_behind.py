"""
Write-behind persistence for cached XP entries.

Ordinary XP gains only mark the in-memory entry dirty and queue it here;
a periodic tick drains the queue and writes each entry to ``user_levels``.
Level-ups bypass the batch with :meth:`WriteBehindFlusher.flush_entry` so
the stored level never lags behind a granted role or a sent notification.

Delivery is at-least-once: a failed write is re-queued for the next tick,
and a crash between draining and writing only loses soft XP deltas.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, Optional

from levelcord.database.record_store import RecordStore
from levelcord.datatypes.leveling_datatypes import CachedXpEntry, LedgerKey
from levelcord.errors import FlushError, RecordNotFoundError
from levelcord.scheduler.periodic_task import PeriodicTask
from levelcord.util.logger import get_logger

logger = get_logger("write_behind")

USER_LEVELS_COLLECTION = "user_levels"


class WriteBehindFlusher:
    """Queue of dirty :class:`CachedXpEntry` objects plus the task that drains it."""

    def __init__(
        self,
        store: RecordStore,
        interval: float = 60.0,
        clock: Callable[[], float] = time.time,
        forced_attempts: int = 2,
    ) -> None:
        self._store = store
        self._clock = clock
        self._forced_attempts = max(1, forced_attempts)
        self._pending: Dict[LedgerKey, CachedXpEntry] = {}
        self._task = PeriodicTask("XP FLUSHER", self.flush_pending, interval)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        return self._task.running

    def schedule(self, entry: CachedXpEntry) -> None:
        """Queue ``entry`` for the next tick. Re-queuing the same entry is a no-op."""
        self._pending[entry.key] = entry

    def is_pending(self, key: LedgerKey) -> bool:
        return key in self._pending

    def discard(self, key: LedgerKey) -> Optional[CachedXpEntry]:
        """
        Drop a queued entry without writing it.

        The entry is also marked clean so an in-flight tick that already
        drained it skips the write.
        """
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry.persisted_revision = entry.revision
        return entry

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist(self, entry: CachedXpEntry) -> bool:
        """
        Write ``entry`` to the store if it has unsaved changes.

        New users are created and their record id is captured on the entry,
        so later writes of the same object become updates.

        Returns:
            True if a write happened, False if the entry was already clean.

        Raises:
            RecordStoreError: If the store rejects the write.
        """
        async with entry.persist_lock:
            if not entry.is_dirty:
                return False

            revision = entry.revision
            fields = entry.snapshot()

            if entry.record_id is not None:
                try:
                    await self._store.update(USER_LEVELS_COLLECTION, entry.record_id, fields)
                except RecordNotFoundError:
                    logger.warning(
                        "[FLUSHER] Record %s for user %s in guild %s vanished, recreating",
                        entry.record_id, entry.user_id, entry.guild_id,
                    )
                    entry.record_id = None

            if entry.record_id is None:
                record = await self._store.create(
                    USER_LEVELS_COLLECTION,
                    {"guild_id": entry.guild_id, "user_id": entry.user_id, **fields},
                )
                entry.record_id = record["id"]

            entry.persisted_revision = revision
            entry.last_db_sync = self._clock()
            return True

    async def flush_pending(self) -> int:
        """
        Drain the queue and persist every entry in it.

        Entries that fail are put back for the next tick. Returns the number
        of entries actually written.
        """
        if not self._pending:
            return 0

        drained, self._pending = self._pending, {}
        items = list(drained.items())
        written = 0

        for index, (key, entry) in enumerate(items):
            try:
                if await self.persist(entry):
                    written += 1
            except asyncio.CancelledError:
                for requeue_key, requeue_entry in items[index:]:
                    self._pending.setdefault(requeue_key, requeue_entry)
                raise
            except Exception as exc:
                logger.warning(
                    "[FLUSHER] Failed to persist XP for user %s in guild %s, will retry: %s",
                    entry.user_id, entry.guild_id, exc,
                )
                self._pending.setdefault(key, entry)

        if written:
            logger.debug("[FLUSHER] Persisted %d XP entries (%d still pending)", written, len(self._pending))
        return written

    async def flush_entry(self, entry: CachedXpEntry) -> None:
        """
        Persist one entry immediately, retrying once before giving up.

        On success the entry leaves the queue; on failure it stays queued for
        the batch tick and :class:`FlushError` is raised.
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self._forced_attempts + 1):
            try:
                await self.persist(entry)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "[FLUSHER] Forced flush attempt %d/%d failed for user %s in guild %s: %s",
                    attempt, self._forced_attempts, entry.user_id, entry.guild_id, exc,
                )
                continue

            if self._pending.get(entry.key) is entry and not entry.is_dirty:
                del self._pending[entry.key]
            return

        self.schedule(entry)
        raise FlushError(entry.guild_id, entry.user_id, last_error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._task.start()

    async def shutdown(self, final_flush: bool = True) -> None:
        """Stop the periodic task and, optionally, make one last flush attempt."""
        await self._task.shutdown()
        if not final_flush:
            return
        try:
            await self.flush_pending()
        except Exception:
            logger.exception("[FLUSHER] Final flush failed")
        if self._pending:
            logger.warning("[FLUSHER] %d XP entries were not persisted before shutdown", len(self._pending))
