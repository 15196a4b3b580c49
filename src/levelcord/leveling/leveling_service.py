"""
Leveling service: the entry point for everything XP related.

One :class:`LevelingService` is built per process and handed to the cogs.
It owns the settings cache, the XP ledger cache, the write-behind flusher,
the role reward dispatcher and the background tasks that keep them in
shape, so tests can build as many isolated instances as they need.

Message flow::

    on_message -> add_xp(user, guild)
        settings gate -> roll XP -> cached entry -> cooldown gate
        -> mutate entry -> queue for write-behind
        -> on level-up: forced flush, announcement, role rewards

Two messages from the same member handled across an ``await`` can both
pass the cooldown gate before either updates the entry. The cooldown is a
rate limit for rewards, so that race is accepted rather than locked away.
"""

from __future__ import annotations

import math
import random
import time
from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from levelcord.configuration.app_configuration import LevelingConfig
from levelcord.database.record_store import RecordStore
from levelcord.datatypes.leveling_datatypes import (
    DEFAULT_XP_COOLDOWN,
    DEFAULT_XP_PER_MESSAGE,
    LeaderboardEntry,
    LevelReward,
    LevelSettings,
    LevelUpResult,
    MemberRoles,
    MigrationReport,
    SyncReport,
    UserLevelStats,
)
from levelcord.leveling.gateway import ChatGateway
from levelcord.leveling.level_curve import level_from_xp, total_xp_for_level, xp_to_next_level
from levelcord.leveling.role_rewards import REWARDS_COLLECTION, RoleRewardDispatcher
from levelcord.leveling.settings_cache import SETTINGS_COLLECTION, SettingsCache
from levelcord.leveling.write_behind import USER_LEVELS_COLLECTION, WriteBehindFlusher
from levelcord.leveling.xp_cache import XpLedgerCache
from levelcord.scheduler.periodic_task import PeriodicTask
from levelcord.util.logger import get_logger

logger = get_logger("leveling_service")

# Extra XP on top of a level's threshold when levels are assigned by hand
LEVEL_ASSIGNMENT_BUFFER = 10
RANK_WINDOW = 100


class RandomSource(Protocol):
    def random(self) -> float: ...


class LevelingService:
    """
    Owner of the leveling caches and their lifecycle.

    Args:
        store: Record store holding the leveling collections.
        gateway: Chat platform operations for announcements and roles.
        config: Cache TTLs and background task intervals.
        rng: Source of the per-message XP jitter.
        clock: Time source in unix seconds.
    """

    def __init__(
        self,
        store: RecordStore,
        gateway: ChatGateway,
        config: Optional[LevelingConfig] = None,
        *,
        rng: Optional[RandomSource] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or LevelingConfig()
        self.store = store
        self.gateway = gateway
        self.rng = rng or random.Random()
        self._clock = clock

        self.settings = SettingsCache(store, self.config.settings_cache_ttl, clock)
        self.flusher = WriteBehindFlusher(store, self.config.flush_interval, clock)
        self.xp_cache = XpLedgerCache(store, self.config.xp_cache_ttl, clock, is_pending=self.flusher.is_pending)
        self.rewards = RoleRewardDispatcher(store, gateway)
        self._sweeper = PeriodicTask("XP CACHE SWEEP", self._sweep_once, self.config.cache_sweep_interval)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the flush and sweep tasks. Must be called from a running loop."""
        self.flusher.start()
        self._sweeper.start()
        logger.info("[LEVELING] Service started")

    async def shutdown(self) -> None:
        """Stop background tasks and make a best-effort final flush."""
        await self._sweeper.shutdown()
        await self.flusher.shutdown(final_flush=True)
        logger.info("[LEVELING] Service shutdown complete")

    async def _sweep_once(self) -> None:
        self.xp_cache.sweep()

    async def flush(self) -> int:
        """Persist every queued XP change now."""
        return await self.flusher.flush_pending()

    # ------------------------------------------------------------------
    # XP accrual
    # ------------------------------------------------------------------

    def roll_xp(self, xp_per_message: int) -> int:
        """Base XP scaled by a uniform factor in ``[0.75, 1.25)``, rounded down."""
        return math.floor(xp_per_message * (0.75 + self.rng.random() * 0.5))

    async def add_xp(self, user_id: int, guild_id: int) -> Optional[LevelUpResult]:
        """
        Award XP for one chat message.

        Returns:
            ``None`` when leveling is off for the guild or the member is on
            cooldown, otherwise the outcome of the gain.

        Raises:
            RecordStoreError: If settings or the member's record cannot be read.
            FlushError: If a level-up could not be persisted after retrying.
        """
        settings = await self.settings.get_settings(guild_id)
        if settings is None or not settings.enabled:
            return None

        xp_gained = self.roll_xp(settings.xp_per_message)

        entry = await self.xp_cache.get_entry(guild_id, user_id)
        now = self._clock()
        if now - entry.last_message_time < settings.xp_cooldown:
            return None

        old_level = entry.level
        entry.xp += xp_gained
        entry.last_message_time = now
        entry.level = level_from_xp(entry.xp)
        entry.mark_dirty()
        self.flusher.schedule(entry)

        result = LevelUpResult(
            leveled_up=entry.level > old_level,
            old_level=old_level,
            new_level=entry.level,
            xp_gained=xp_gained,
            total_xp=entry.xp,
        )

        if result.leveled_up:
            logger.info(
                "[LEVELING] User %s in guild %s reached level %d (was %d)",
                user_id, guild_id, result.new_level, old_level,
            )
            # A FlushError here skips the announcement and rewards for this level
            await self.flusher.flush_entry(entry)
            await self._announce_level_up(settings, user_id, result.new_level)
            await self._grant_rewards_logged(user_id, guild_id, result.new_level)

        return result

    async def _announce_level_up(self, settings: LevelSettings, user_id: int, level: int) -> None:
        if not settings.notification_channel_id:
            return
        try:
            member = await self.gateway.fetch_member(settings.guild_id, user_id)
            mention = self.gateway.mention(member) if member is not None else f"<@{user_id}>"
            await self.gateway.send_message(
                settings.notification_channel_id,
                f"🎉 Congratulations {mention}! You leveled up to **Level {level}**!",
            )
        except Exception as exc:
            logger.warning(
                "[LEVELING] Failed to send level-up notification for user %s in guild %s: %s",
                user_id, settings.guild_id, exc,
            )

    async def _grant_rewards_logged(self, user_id: int, guild_id: int, level: int) -> List[int]:
        try:
            return await self.rewards.grant_rewards_up_to(user_id, guild_id, level)
        except Exception as exc:
            logger.warning("[LEVELING] Failed to process role rewards for user %s in guild %s: %s", user_id, guild_id, exc)
            return []

    # ------------------------------------------------------------------
    # Guild settings
    # ------------------------------------------------------------------

    async def configure(
        self,
        guild_id: int,
        notification_channel_id: Optional[int],
        xp_per_message: int = DEFAULT_XP_PER_MESSAGE,
        xp_cooldown: int = DEFAULT_XP_COOLDOWN,
    ) -> LevelSettings:
        """Create or replace the guild's settings and enable leveling."""
        settings = LevelSettings(
            guild_id=guild_id,
            enabled=True,
            xp_per_message=xp_per_message,
            xp_cooldown=xp_cooldown,
            notification_channel_id=notification_channel_id,
        )
        existing = await self.store.first(SETTINGS_COLLECTION, {"guild_id": guild_id})
        if existing:
            record = await self.store.update(SETTINGS_COLLECTION, existing["id"], settings.to_fields())
        else:
            record = await self.store.create(SETTINGS_COLLECTION, settings.to_fields())

        self.settings.invalidate(guild_id)
        logger.info("[LEVELING] Configured guild %s (xp=%d, cooldown=%ds)", guild_id, xp_per_message, xp_cooldown)
        return LevelSettings.from_record(record)

    async def set_enabled(self, guild_id: int, enabled: bool) -> bool:
        """Toggle leveling. Returns False when the guild was never configured."""
        existing = await self.store.first(SETTINGS_COLLECTION, {"guild_id": guild_id})
        if existing is None:
            return False
        await self.store.update(SETTINGS_COLLECTION, existing["id"], {"enabled": 1 if enabled else 0})
        self.settings.invalidate(guild_id)
        return True

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    async def list_rewards(self, guild_id: int) -> List[LevelReward]:
        records = await self.store.find(REWARDS_COLLECTION, {"guild_id": guild_id}, sort="+level")
        return [LevelReward.from_record(record) for record in records]

    async def set_reward(self, guild_id: int, level: int, role_id: int) -> LevelReward:
        """Map ``level`` to ``role_id``, replacing any role already mapped to that level."""
        existing = await self.store.first(REWARDS_COLLECTION, {"guild_id": guild_id, "level": level})
        if existing:
            record = await self.store.update(REWARDS_COLLECTION, existing["id"], {"role_id": role_id})
        else:
            record = await self.store.create(
                REWARDS_COLLECTION, {"guild_id": guild_id, "level": level, "role_id": role_id}
            )
        return LevelReward.from_record(record)

    async def remove_reward(self, guild_id: int, role_id: int) -> bool:
        existing = await self.store.first(REWARDS_COLLECTION, {"guild_id": guild_id, "role_id": role_id})
        if existing is None:
            return False
        await self.store.delete(REWARDS_COLLECTION, existing["id"])
        return True

    # ------------------------------------------------------------------
    # Member administration
    # ------------------------------------------------------------------

    def _forget_member(self, guild_id: int, user_id: int) -> None:
        self.flusher.discard((guild_id, user_id))
        self.xp_cache.evict(guild_id, user_id)

    async def _write_member_xp(self, guild_id: int, user_id: int, xp: int) -> None:
        fields = {"xp": xp, "level": level_from_xp(xp), "last_message_time": self._clock()}
        existing = await self.store.first(USER_LEVELS_COLLECTION, {"guild_id": guild_id, "user_id": user_id})
        if existing:
            await self.store.update(USER_LEVELS_COLLECTION, existing["id"], fields)
        else:
            await self.store.create(USER_LEVELS_COLLECTION, {"guild_id": guild_id, "user_id": user_id, **fields})

    async def reset_user(self, guild_id: int, user_id: int) -> bool:
        """Delete a member's XP. Returns False when there was nothing stored."""
        self._forget_member(guild_id, user_id)
        existing = await self.store.first(USER_LEVELS_COLLECTION, {"guild_id": guild_id, "user_id": user_id})
        if existing is None:
            return False
        await self.store.delete(USER_LEVELS_COLLECTION, existing["id"])
        logger.info("[LEVELING] Reset XP for user %s in guild %s", user_id, guild_id)
        return True

    async def set_user_level(self, guild_id: int, user_id: int, level: int) -> int:
        """
        Put a member just past the threshold of ``level`` and grant its rewards.

        Returns:
            The XP total that was stored.
        """
        xp = total_xp_for_level(level) + LEVEL_ASSIGNMENT_BUFFER
        self._forget_member(guild_id, user_id)
        await self._write_member_xp(guild_id, user_id, xp)
        await self._grant_rewards_logged(user_id, guild_id, level)
        return xp

    async def sync_roles(self, guild_id: int) -> Optional[SyncReport]:
        """Grant missing reward roles to every member with stored XP. ``None`` if nobody has XP."""
        await self.flush()
        records = await self.store.find(USER_LEVELS_COLLECTION, {"guild_id": guild_id})
        if not records:
            return None

        report = SyncReport()
        for record in records:
            try:
                await self.rewards.grant_rewards_up_to(
                    int(record["user_id"]), guild_id, level_from_xp(int(record["xp"]))
                )
                report.succeeded += 1
            except Exception as exc:
                logger.warning("[LEVELING] Role sync failed for user %s in guild %s: %s", record["user_id"], guild_id, exc)
                report.failed += 1
        return report

    async def migrate_roles(self, guild_id: int, members: Iterable[MemberRoles]) -> Optional[MigrationReport]:
        """
        Give members the XP matching the highest reward role they already hold.

        Members whose stored level is already at least that high are left
        alone. Returns ``None`` when the guild has no rewards configured.
        """
        rewards = await self.list_rewards(guild_id)
        if not rewards:
            return None

        await self.flush()
        role_levels = {reward.role_id: reward.level for reward in rewards}
        report = MigrationReport()

        for member in members:
            if member.is_bot:
                report.skipped += 1
                continue

            highest = max((role_levels[role_id] for role_id in member.role_ids if role_id in role_levels), default=0)
            if highest == 0:
                report.skipped += 1
                continue

            try:
                existing = await self.store.first(
                    USER_LEVELS_COLLECTION, {"guild_id": guild_id, "user_id": member.user_id}
                )
                if existing and level_from_xp(int(existing["xp"])) >= highest:
                    report.skipped += 1
                    continue
                self._forget_member(guild_id, member.user_id)
                await self._write_member_xp(guild_id, member.user_id, total_xp_for_level(highest) + LEVEL_ASSIGNMENT_BUFFER)
                report.updated += 1
            except Exception as exc:
                logger.error("[LEVELING] Role migration failed for user %s in guild %s: %s", member.user_id, guild_id, exc)
                report.errors += 1

        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_user_stats(self, guild_id: int, user_id: int) -> Optional[UserLevelStats]:
        """Level, XP and rank for ``/level``; ``None`` if the member has no XP yet."""
        await self.flush()
        record = await self.store.first(USER_LEVELS_COLLECTION, {"guild_id": guild_id, "user_id": user_id})
        if record is None:
            return None

        xp = int(record["xp"])
        top = await self.store.find(USER_LEVELS_COLLECTION, {"guild_id": guild_id}, sort="-xp", limit=RANK_WINDOW)
        rank = next((index for index, row in enumerate(top, start=1) if int(row["user_id"]) == user_id), None)

        return UserLevelStats(
            user_id=user_id,
            xp=xp,
            level=level_from_xp(xp),
            xp_to_next_level=xp_to_next_level(xp),
            rank=rank,
        )

    async def leaderboard(self, guild_id: int, page: int = 1) -> Tuple[List[LeaderboardEntry], int]:
        """
        One page of the guild leaderboard, highest XP first.

        Returns:
            The entries on the page and the total number of ranked members.
        """
        per_page = self.config.leaderboard_page_size
        page = max(1, page)
        await self.flush()

        total = await self.store.count(USER_LEVELS_COLLECTION, {"guild_id": guild_id})
        records = await self.store.find(
            USER_LEVELS_COLLECTION,
            {"guild_id": guild_id},
            sort="-xp",
            limit=per_page,
            offset=(page - 1) * per_page,
        )
        entries = [
            LeaderboardEntry(
                rank=(page - 1) * per_page + index,
                user_id=int(record["user_id"]),
                xp=int(record["xp"]),
                level=level_from_xp(int(record["xp"])),
            )
            for index, record in enumerate(records, start=1)
        ]
        return entries, total
