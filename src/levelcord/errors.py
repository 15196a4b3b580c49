"""Exception types shared by the record store and the leveling subsystem."""

from __future__ import annotations


class RecordStoreError(Exception):
    """Base class for failures talking to the record store."""


class RecordNotFoundError(RecordStoreError):
    """Raised when a record id does not exist in a collection."""

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"No record {record_id!r} in collection {collection!r}")
        self.collection = collection
        self.record_id = record_id


class InvalidQueryError(RecordStoreError):
    """Raised for unknown collections, fields, operators or sort keys."""


class FlushError(RecordStoreError):
    """Raised when a forced level-up flush still fails after retrying."""

    def __init__(self, guild_id: int, user_id: int, cause: BaseException) -> None:
        super().__init__(f"Failed to persist XP for user {user_id} in guild {guild_id}: {cause}")
        self.guild_id = guild_id
        self.user_id = user_id
        self.cause = cause


class RoleGrantError(Exception):
    """Raised when a reward role cannot be granted (deleted role, missing permission)."""
