"""
Database package for Levelcord.

Public API:
    - RecordStore: collection-style CRUD over the leveling tables
    - ConnectionManager: single aiosqlite connection with serialised writes
"""

from levelcord.database.db_connection import ConnectionManager
from levelcord.database.record_store import RecordStore

__all__ = ["ConnectionManager", "RecordStore"]
