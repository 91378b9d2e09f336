"""
SQLite Database Adapter

Default backend for routing rules and, with RATE_LIMIT_BACKEND=database,
for rate-limit windows.

SQLite characteristics that matter here:
- File-based, no server; in-memory databases are used by the tests
- Single writer at a time (file locking), so one upsert statement is atomic
- RETURNING needs SQLite 3.35+, which every current Python ships with
"""

from typing import Any, Tuple
from sqlalchemy import case, delete
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from linkrotator.db.interface import DatabaseAdapter
from linkrotator.db.models import RateWindow


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.
    
    This adapter handles all SQLite-specific configuration and operations.
    """
    
    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create SQLite async engine with appropriate configuration.
        
        SQLite-specific configuration:
        - NullPool: Single connection (file-based, no pooling needed)
        - check_same_thread=False: Required for async SQLite operations
        
        Args:
            database_url: SQLite connection string (sqlite+aiosqlite:///...)
            **kwargs: Additional engine options (merged with SQLite defaults)
        
        Returns:
            Configured AsyncEngine for SQLite
        """
        engine_kwargs = self.get_engine_kwargs()
        engine_kwargs.setdefault("poolclass", self.get_pool_class())
        engine_kwargs.update(kwargs)
        
        return create_async_engine(
            database_url,
            connect_args=self.get_connect_args(),
            **engine_kwargs
        )
    
    def get_pool_class(self) -> type[NullPool]:
        return NullPool
    
    def get_connect_args(self) -> dict[str, Any]:
        return {
            "check_same_thread": False
        }
    
    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }
    
    async def increment_rate_window(
        self,
        session: AsyncSession,
        key: str,
        now: float,
        window_seconds: float,
    ) -> Tuple[int, float]:
        """
        Atomic window increment using INSERT ... ON CONFLICT DO UPDATE ... RETURNING.
        
        Both SET expressions read the row as it was before the update, so the
        expired check is evaluated once against the old window start.
        Requires SQLite 3.35 or newer.
        """
        table = RateWindow.__table__
        expired = table.c["window_start"] <= now - window_seconds
        
        statement = (
            sqlite_insert(table)
            .values(key=key, window_start=now, count=1)
            .on_conflict_do_update(
                index_elements=[table.c["key"]],
                set_={
                    "window_start": case((expired, now), else_=table.c["window_start"]),
                    "count": case((expired, 1), else_=table.c["count"] + 1),
                },
            )
            .returning(table.c["count"], table.c["window_start"])
        )
        
        result = await session.execute(statement)
        count, window_start = result.one()
        return count, window_start
    
    async def prune_rate_windows(self, session: AsyncSession, older_than: float) -> int:
        """Uses ix_rate_windows_window_start."""
        result = await session.execute(
            delete(RateWindow).where(RateWindow.window_start <= older_than)
        )
        return result.rowcount
    
    def get_dialect_name(self) -> str:
        return "sqlite"


def get_database_adapter() -> DatabaseAdapter:
    """
    Factory function to get the database adapter.
    
    Returns SQLiteAdapter by default. To switch to PostgreSQL, create a
    PostgreSQLAdapter class and update this function.
    
    Returns:
        DatabaseAdapter instance
    """
    return SQLiteAdapter()
