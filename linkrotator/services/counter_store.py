"""
Rate-Limit Counter Stores

Backends that count requests per key inside a time window. Each store
offers one atomic operation, increment-and-check, so concurrent request
handlers can never lose or double-count an increment.

Backends:
- InMemoryCounterStore: dict guarded by a threading.Lock; per-process only
- DatabaseCounterStore: one upsert statement per request, shared by every
  service instance using the same database

Window semantics:
- A window opens with the first request for a key
- Every request counts, including the ones that end up denied
- Once ``window_seconds`` have passed since the window opened, the next
  request opens a fresh window
- Elapsed windows are pruned: the in-memory store when it exceeds its key
  bound, the database store every ``prune_every`` checks
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from linkrotator.core.exceptions import CounterStoreError
from linkrotator.db.interface import DatabaseAdapter

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _as_datetime(epoch_seconds: float) -> datetime:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)


class CounterStore(ABC):
    """
    Abstract interface for rate-limit counter stores.
    
    Implementations must make ``increment_and_check`` a single atomic step.
    """
    
    @abstractmethod
    async def increment_and_check(
        self,
        key: str,
        window_seconds: int,
        max_requests: int,
    ) -> Tuple[bool, int, datetime]:
        """
        Count one request for ``key`` and compare against the limit.
        
        Args:
            key: Client key (e.g. "redirect:<ip>")
            window_seconds: Window length in seconds
            max_requests: Requests allowed per window
        
        Returns:
            Tuple of (allowed, count, reset_at)
            - allowed: True if the post-increment count is within the limit
            - count: Requests counted in the current window
            - reset_at: When the current window ends
        
        Raises:
            CounterStoreError: If the store cannot be reached
        """
        pass
    
    @abstractmethod
    async def prune(self, window_seconds: int) -> int:
        """
        Drop windows that have fully elapsed.
        
        Returns:
            Number of windows removed
        """
        pass
    
    async def close(self) -> None:
        """Release resources held by the store."""
        pass


class InMemoryCounterStore(CounterStore):
    """
    Per-process counter store.
    
    Windows live in a dict of key -> (window_start, count). The lock is held
    for the whole read-modify-write so it behaves as one atomic increment for
    every thread and coroutine of the process.
    
    Example:
        >>> store = InMemoryCounterStore()
        >>> allowed, count, reset_at = await store.increment_and_check("redirect:1.2.3.4", 10, 100)
    """
    
    DEFAULT_MAX_KEYS = 100_000
    
    def __init__(self, max_keys: int = DEFAULT_MAX_KEYS, clock: Clock = time.time):
        """
        Initialize in-memory store.
        
        Args:
            max_keys: Maximum number of tracked keys; above it expired and
                then oldest windows are evicted
            clock: Returns the current time in epoch seconds
        """
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._max_keys = max_keys
        self._clock = clock
    
    def _evict_if_needed(self, now: float, window_seconds: int) -> None:
        """
        Keep the number of tracked keys bounded.
        
        Spoofed client addresses would otherwise grow the dict without limit.
        Must be called while holding self._lock.
        """
        if len(self._windows) <= self._max_keys:
            return
        
        expired = [k for k, (start, _) in self._windows.items() if now - start >= window_seconds]
        for key in expired:
            del self._windows[key]
        
        if len(self._windows) > self._max_keys:
            evict_count = max(1, len(self._windows) // 10)
            oldest = sorted(self._windows, key=lambda k: self._windows[k][0])[:evict_count]
            for key in oldest:
                del self._windows[key]
        
        logger.warning(
            f"Rate limit memory eviction: {len(self._windows)} keys left "
            f"(max_keys={self._max_keys})"
        )
    
    async def increment_and_check(
        self,
        key: str,
        window_seconds: int,
        max_requests: int,
    ) -> Tuple[bool, int, datetime]:
        with self._lock:
            now = self._clock()
            window_start, count = self._windows.get(key, (now, 0))
            
            if now - window_start >= window_seconds:
                window_start, count = now, 0
            
            count += 1
            self._windows[key] = (window_start, count)
            self._evict_if_needed(now, window_seconds)
        
        return count <= max_requests, count, _as_datetime(window_start + window_seconds)
    
    async def prune(self, window_seconds: int) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, (start, _) in self._windows.items() if now - start >= window_seconds]
            for key in expired:
                del self._windows[key]
        return len(expired)


class DatabaseCounterStore(CounterStore):
    """
    Counter store backed by the ``rate_windows`` table.
    
    Each call runs in its own short session; the increment itself is one
    statement provided by the database adapter. Every ``prune_every``
    checks, elapsed windows are deleted in the same transaction so the
    table holds roughly one row per recently active client.
    """
    
    DEFAULT_PRUNE_EVERY = 1000
    
    def __init__(
        self,
        session_factory: async_sessionmaker,
        adapter: DatabaseAdapter,
        clock: Clock = time.time,
        prune_every: int = DEFAULT_PRUNE_EVERY,
    ):
        """
        Args:
            session_factory: Creates database sessions
            adapter: Dialect adapter providing the atomic upsert
            clock: Returns the current time in epoch seconds
            prune_every: Checks between two deletions of elapsed windows
        """
        self.session_factory = session_factory
        self.adapter = adapter
        self._clock = clock
        self._prune_every = prune_every
        self._checks_since_prune = 0
    
    async def increment_and_check(
        self,
        key: str,
        window_seconds: int,
        max_requests: int,
    ) -> Tuple[bool, int, datetime]:
        now = self._clock()
        self._checks_since_prune += 1
        prune_due = self._checks_since_prune >= self._prune_every
        if prune_due:
            self._checks_since_prune = 0
        
        async with self.session_factory() as session:
            try:
                count, window_start = await self.adapter.increment_rate_window(
                    session, key, now, window_seconds
                )
                if prune_due:
                    # The row just written opened at or after now - window, so it is kept
                    pruned = await self.adapter.prune_rate_windows(session, now - window_seconds)
                    logger.debug(f"Pruned {pruned} elapsed rate windows")
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise CounterStoreError(f"failed to increment window for '{key}'", original_error=e)
        
        return count <= max_requests, count, _as_datetime(window_start + window_seconds)
    
    async def prune(self, window_seconds: int) -> int:
        async with self.session_factory() as session:
            try:
                pruned = await self.adapter.prune_rate_windows(session, self._clock() - window_seconds)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise CounterStoreError("failed to prune rate windows", original_error=e)
        
        if pruned:
            logger.info(f"Pruned {pruned} elapsed rate windows")
        return pruned
