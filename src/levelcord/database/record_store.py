"""
Collection-based record store on top of SQLite.

The leveling code talks to persistence through a small document-store
style API: every collection is a table, every record is a plain ``dict``
with a string ``id``, and queries are expressed as filter mappings rather
than SQL. Keeping the surface this narrow means the caches above it only
depend on ``find`` / ``get`` / ``create`` / ``update`` / ``delete``.

Filter keys are either a bare field name (equality) or ``"<field> <op>"``
with one of ``=, !=, <, <=, >, >=``::

    await store.find("level_rewards", {"guild_id": 1, "level <=": 5}, sort="+level")

Sort strings are comma-separated field names prefixed with ``+`` or ``-``.
"""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from levelcord.database.db_connection import ConnectionManager
from levelcord.database.db_schema import SchemaManager
from levelcord.errors import InvalidQueryError, RecordNotFoundError, RecordStoreError
from levelcord.util.logger import get_logger

logger = get_logger("record_store")

Record = Dict[str, Any]

# Writable fields per collection; id/created/updated are managed by the store.
COLLECTIONS: Dict[str, Tuple[str, ...]] = {
    "level_settings": ("guild_id", "enabled", "xp_per_message", "xp_cooldown", "notification_channel_id"),
    "user_levels": ("guild_id", "user_id", "xp", "level", "last_message_time"),
    "level_rewards": ("guild_id", "level", "role_id"),
}
SYSTEM_FIELDS: Tuple[str, ...] = ("id", "created", "updated")
OPERATORS = frozenset({"=", "!=", "<", "<=", ">", ">="})


def _fields_for(collection: str) -> Tuple[str, ...]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise InvalidQueryError(f"Unknown collection {collection!r}") from None


def _check_field(collection: str, field: str) -> None:
    if field not in SYSTEM_FIELDS and field not in _fields_for(collection):
        raise InvalidQueryError(f"Unknown field {field!r} for collection {collection!r}")


def build_where(collection: str, filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
    """Translate a filter mapping into a ``WHERE`` clause and its parameters."""
    if not filters:
        return "", []

    clauses: List[str] = []
    params: List[Any] = []
    for key, value in filters.items():
        parts = key.split()
        if len(parts) == 1:
            field, op = parts[0], "="
        elif len(parts) == 2:
            field, op = parts
        else:
            raise InvalidQueryError(f"Malformed filter key {key!r}")

        _check_field(collection, field)
        if op not in OPERATORS:
            raise InvalidQueryError(f"Unsupported operator {op!r} in filter {key!r}")

        if field == "id" and value is not None:
            value = int(value)

        if value is None and op in ("=", "!="):
            clauses.append(f"{field} IS {'NOT ' if op == '!=' else ''}NULL")
        else:
            clauses.append(f"{field} {op} ?")
            params.append(value)

    return " WHERE " + " AND ".join(clauses), params


def build_order(collection: str, sort: Optional[str]) -> str:
    """Translate ``"+level,-xp"`` style sort strings into an ``ORDER BY`` clause."""
    if not sort:
        return ""

    terms: List[str] = []
    for raw in sort.split(","):
        term = raw.strip()
        if not term:
            continue
        direction = "ASC"
        if term[0] in "+-":
            direction = "DESC" if term[0] == "-" else "ASC"
            term = term[1:]
        _check_field(collection, term)
        terms.append(f"{term} {direction}")

    return " ORDER BY " + ", ".join(terms) if terms else ""


def _to_record(row: Any) -> Record:
    record = dict(row)
    record["id"] = str(record["id"])
    return record


class RecordStore:
    """
    CRUD facade over the leveling collections.

    SQLite errors are re-raised as :class:`RecordStoreError` so callers only
    have to know about one failure type.
    """

    def __init__(self, connection: Optional[ConnectionManager] = None) -> None:
        self.connection = connection or ConnectionManager()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, db_path: Path) -> None:
        """Open the database file and make sure the schema exists."""
        await self.connection.open(db_path)
        await SchemaManager.initialize_schema(self.connection.connection)
        logger.info("[RECORD STORE] Ready at %s", db_path)

    async def close(self) -> None:
        await self.connection.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Record]:
        """Return every record in ``collection`` matching ``filters``."""
        _fields_for(collection)
        where, params = build_where(collection, filters)
        query = f"SELECT * FROM {collection}{where}{build_order(collection, sort)}"
        if limit is not None or offset:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit if limit is not None else -1, offset])

        try:
            async with self.connection.read() as conn:
                cursor = await conn.execute(query, params)
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"find on {collection} failed: {exc}") from exc

        return [_to_record(row) for row in rows]

    async def first(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[str] = None,
    ) -> Optional[Record]:
        """Return the first matching record or ``None``."""
        records = await self.find(collection, filters, sort=sort, limit=1)
        return records[0] if records else None

    async def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        _fields_for(collection)
        where, params = build_where(collection, filters)
        try:
            async with self.connection.read() as conn:
                cursor = await conn.execute(f"SELECT COUNT(*) FROM {collection}{where}", params)
                row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"count on {collection} failed: {exc}") from exc
        return int(row[0]) if row else 0

    async def get(self, collection: str, record_id: str) -> Record:
        """Fetch one record by id, raising :class:`RecordNotFoundError` when absent."""
        record = await self.first(collection, {"id": record_id})
        if record is None:
            raise RecordNotFoundError(collection, str(record_id))
        return record

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _writable(self, collection: str, fields: Mapping[str, Any]) -> Tuple[List[str], List[Any]]:
        allowed = _fields_for(collection)
        names: List[str] = []
        values: List[Any] = []
        for name, value in fields.items():
            if name not in allowed:
                raise InvalidQueryError(f"Field {name!r} is not writable on {collection!r}")
            names.append(name)
            values.append(value)
        return names, values

    async def create(self, collection: str, fields: Mapping[str, Any]) -> Record:
        """Insert a record and return it with its new id."""
        names, values = self._writable(collection, fields)
        now = time.time()
        columns = ", ".join([*names, "created", "updated"])
        placeholders = ", ".join("?" for _ in range(len(names) + 2))

        try:
            async with self.connection.transaction() as conn:
                cursor = await conn.execute(
                    f"INSERT INTO {collection} ({columns}) VALUES ({placeholders})",
                    [*values, now, now],
                )
                record_id = cursor.lastrowid
                cursor = await conn.execute(f"SELECT * FROM {collection} WHERE id = ?", (record_id,))
                row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"create on {collection} failed: {exc}") from exc

        logger.debug("[RECORD STORE] Created %s/%s", collection, record_id)
        return _to_record(row)

    async def update(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> Record:
        """Patch a record by id and return the stored result."""
        names, values = self._writable(collection, fields)
        assignments = ", ".join([*(f"{name} = ?" for name in names), "updated = ?"])

        try:
            async with self.connection.transaction() as conn:
                cursor = await conn.execute(
                    f"UPDATE {collection} SET {assignments} WHERE id = ?",
                    [*values, time.time(), int(record_id)],
                )
                if cursor.rowcount == 0:
                    raise RecordNotFoundError(collection, str(record_id))
                cursor = await conn.execute(f"SELECT * FROM {collection} WHERE id = ?", (int(record_id),))
                row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"update on {collection}/{record_id} failed: {exc}") from exc

        return _to_record(row)

    async def delete(self, collection: str, record_id: str) -> None:
        _fields_for(collection)
        try:
            async with self.connection.transaction() as conn:
                cursor = await conn.execute(f"DELETE FROM {collection} WHERE id = ?", (int(record_id),))
                if cursor.rowcount == 0:
                    raise RecordNotFoundError(collection, str(record_id))
        except sqlite3.Error as exc:
            raise RecordStoreError(f"delete on {collection}/{record_id} failed: {exc}") from exc

    async def delete_where(self, collection: str, filters: Mapping[str, Any]) -> int:
        """Delete every matching record and return how many were removed."""
        where, params = build_where(collection, filters)
        if not where:
            raise InvalidQueryError("delete_where requires at least one filter")
        try:
            async with self.connection.transaction() as conn:
                cursor = await conn.execute(f"DELETE FROM {collection}{where}", params)
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise RecordStoreError(f"delete on {collection} failed: {exc}") from exc

