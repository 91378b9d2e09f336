"""
Persistence layer: routing rules and rate-limit windows.

Dialect-specific SQL (engine options, the atomic window upsert) lives in a
DatabaseAdapter; SQLiteAdapter is the only one shipped.
"""

from linkrotator.db.interface import DatabaseAdapter
from linkrotator.db.session import get_session, async_session_maker, engine

__all__ = [
    "DatabaseAdapter",
    "get_session",
    "async_session_maker",
    "engine",
]
