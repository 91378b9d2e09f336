"""
Database Abstraction Interface

A DatabaseAdapter owns everything that differs between database backends:
- How the async engine is built (pool class, connect args)
- The atomic increment of a rate-limit window, whose upsert syntax is
  dialect-specific

Everything else (models, rule queries) is plain SQLModel and shared.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import Pool


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.
    
    A PostgreSQL adapter would implement increment_rate_window with
    ``postgresql.insert(...).on_conflict_do_update(...)``.
    """
    
    @abstractmethod
    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create the async engine.
        
        Keyword arguments override the adapter's defaults (tests pass
        ``poolclass=StaticPool`` for in-memory databases).
        """
        pass
    
    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        pass
    
    @abstractmethod
    def get_connect_args(self) -> dict[str, Any]:
        pass
    
    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        pass
    
    @abstractmethod
    async def increment_rate_window(
        self,
        session: AsyncSession,
        key: str,
        now: float,
        window_seconds: float,
    ) -> Tuple[int, float]:
        """
        Count one request for ``key`` in a single atomic statement.
        
        Creates the window row on first use and restarts it when
        ``now - window_start >= window_seconds``. Concurrent callers must
        never lose or double-count an increment.
        
        Args:
            session: The database session
            key: Rate-limit key
            now: Current time in epoch seconds
            window_seconds: Window length
        
        Returns:
            Tuple of (post-increment count, window start)
        """
        pass
    
    @abstractmethod
    async def prune_rate_windows(self, session: AsyncSession, older_than: float) -> int:
        """
        Delete windows that opened at or before ``older_than`` (epoch seconds).
        
        Returns:
            Number of rows deleted
        """
        pass
    
    @abstractmethod
    def get_dialect_name(self) -> str:
        """Dialect name, e.g. 'sqlite'; migrations switch on batch mode for SQLite."""
        pass
