"""
Data containers for the leveling subsystem.

Records coming out of the record store are plain dicts; the classes here
give them names and types. :class:`CachedXpEntry` is the mutable, in-memory
view of a user's XP that the ledger cache hands out by reference, so the
write-behind flusher always persists the latest state of the same object.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

DEFAULT_XP_PER_MESSAGE = 20
DEFAULT_XP_COOLDOWN = 60

# (guild_id, user_id)
LedgerKey = Tuple[int, int]


def _optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


@dataclass(slots=True)
class LevelSettings:
    """Per-guild leveling configuration."""

    guild_id: int
    enabled: bool = True
    xp_per_message: int = DEFAULT_XP_PER_MESSAGE
    xp_cooldown: int = DEFAULT_XP_COOLDOWN
    notification_channel_id: Optional[int] = None
    record_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "LevelSettings":
        # Zero/missing values fall back to defaults, mirroring `value || default`
        return cls(
            guild_id=int(record["guild_id"]),
            enabled=bool(record.get("enabled")),
            xp_per_message=int(record.get("xp_per_message") or DEFAULT_XP_PER_MESSAGE),
            xp_cooldown=int(record.get("xp_cooldown") or DEFAULT_XP_COOLDOWN),
            notification_channel_id=_optional_int(record.get("notification_channel_id")),
            record_id=record.get("id"),
        )

    def to_fields(self) -> dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "enabled": 1 if self.enabled else 0,
            "xp_per_message": self.xp_per_message,
            "xp_cooldown": self.xp_cooldown,
            "notification_channel_id": self.notification_channel_id,
        }


@dataclass(slots=True)
class LevelReward:
    """A role granted once a member reaches ``level`` in ``guild_id``."""

    guild_id: int
    level: int
    role_id: int
    record_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "LevelReward":
        return cls(
            guild_id=int(record["guild_id"]),
            level=int(record["level"]),
            role_id=int(record["role_id"]),
            record_id=record.get("id"),
        )


@dataclass(slots=True)
class UserXpRecord:
    """Durable XP state for one member of one guild."""

    guild_id: int
    user_id: int
    xp: int = 0
    level: int = 0
    last_message_time: float = 0.0
    record_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "UserXpRecord":
        return cls(
            guild_id=int(record["guild_id"]),
            user_id=int(record["user_id"]),
            xp=int(record.get("xp") or 0),
            level=int(record.get("level") or 0),
            last_message_time=float(record.get("last_message_time") or 0.0),
            record_id=record.get("id"),
        )


@dataclass(eq=False)
class CachedXpEntry:
    """
    In-memory XP record held by the ledger cache.

    ``revision`` is bumped on every mutation and ``persisted_revision``
    records the revision last written to the store, so an entry is dirty
    exactly when the two differ. ``persist_lock`` serialises writes of this
    entry so a forced flush and a batch tick never create it twice.
    """

    guild_id: int
    user_id: int
    xp: int = 0
    level: int = 0
    last_message_time: float = 0.0
    record_id: Optional[str] = None
    cache_time: float = 0.0
    last_db_sync: Optional[float] = None
    revision: int = 0
    persisted_revision: int = 0
    persist_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def key(self) -> LedgerKey:
        return (self.guild_id, self.user_id)

    @property
    def is_dirty(self) -> bool:
        return self.revision != self.persisted_revision

    def mark_dirty(self) -> None:
        self.revision += 1

    def snapshot(self) -> dict[str, Any]:
        """Fields written to ``user_levels`` on every persist."""
        return {
            "xp": self.xp,
            "level": self.level,
            "last_message_time": self.last_message_time,
        }


@dataclass(frozen=True, slots=True)
class LevelUpResult:
    """Outcome of a message that earned XP."""

    leveled_up: bool
    old_level: int
    new_level: int
    xp_gained: int
    total_xp: int


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user_id: int
    xp: int
    level: int


@dataclass(frozen=True, slots=True)
class UserLevelStats:
    """Snapshot used by the ``/level`` command."""

    user_id: int
    xp: int
    level: int
    xp_to_next_level: int
    rank: Optional[int]


@dataclass(frozen=True, slots=True)
class MemberRoles:
    """Roles held by a guild member, as seen by the role migration."""

    user_id: int
    role_ids: frozenset[int]
    is_bot: bool = False


@dataclass(slots=True)
class MigrationReport:
    updated: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass(slots=True)
class SyncReport:
    succeeded: int = 0
    failed: int = 0
