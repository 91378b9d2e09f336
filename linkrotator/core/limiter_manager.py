"""
Rate Limiter Manager

This module manages the global redirect rate limiter instance.
The limiter is initialized once per application instance and shared across requests.

Design:
- Singleton pattern: One limiter per application instance
- Initialized on application startup, or lazily on first use
- Backend chosen from settings: in-memory counters are per instance,
  database counters are shared by every instance using the same database
"""

import logging
from typing import Optional

from linkrotator.core.setting import settings, RateLimitBackendOptions
from linkrotator.services.counter_store import CounterStore, DatabaseCounterStore, InMemoryCounterStore
from linkrotator.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Global limiter instance (initialized on startup)
_rate_limiter: Optional[RateLimiter] = None


def create_counter_store() -> CounterStore:
    """Build the counter store selected by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == RateLimitBackendOptions.database:
        from linkrotator.db.session import async_session_maker, db_adapter
        return DatabaseCounterStore(
            async_session_maker,
            db_adapter,
            prune_every=settings.RATE_LIMIT_PRUNE_EVERY,
        )
    return InMemoryCounterStore(max_keys=settings.RATE_LIMIT_MAX_KEYS)


def create_rate_limiter() -> RateLimiter:
    return RateLimiter(
        store=create_counter_store(),
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        timeout_seconds=settings.RATE_LIMIT_TIMEOUT_SECONDS,
        enabled=not settings.DISABLE_RATE_LIMITING,
    )


async def initialize_rate_limiter() -> None:
    """Initialize the global rate limiter."""
    global _rate_limiter
    
    if _rate_limiter is not None:
        logger.warning("Rate limiter already initialized")
        return
    
    _rate_limiter = create_rate_limiter()
    
    # Windows left behind by a previous run
    try:
        pruned = await _rate_limiter.prune()
    except Exception as e:
        logger.warning(f"Could not prune rate windows on startup: {e}")
    else:
        logger.debug(f"Startup prune removed {pruned} rate windows")
    
    logger.info(
        f"Rate limiter initialized: "
        f"backend={settings.RATE_LIMIT_BACKEND.value}, "
        f"window={settings.RATE_LIMIT_WINDOW_SECONDS}s, "
        f"max_requests={settings.RATE_LIMIT_MAX_REQUESTS}, "
        f"enabled={not settings.DISABLE_RATE_LIMITING}"
    )


async def get_rate_limiter() -> RateLimiter:
    """
    Get the global rate limiter instance.
    
    Initializes it on first use when startup did not run
    (e.g. when the app is mounted without lifespan events).
    """
    if _rate_limiter is None:
        await initialize_rate_limiter()
    return _rate_limiter


async def shutdown_rate_limiter() -> None:
    """Close the counter store and drop the global limiter."""
    global _rate_limiter
    
    if _rate_limiter is not None:
        logger.info("Shutting down rate limiter")
        try:
            await _rate_limiter.close()
        except Exception as e:
            logger.warning(f"Failed to close rate limiter cleanly: {e}")
        _rate_limiter = None
