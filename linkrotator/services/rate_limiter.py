"""
Redirect Rate Limiter

Admission control in front of the redirect path. A request is admitted
while its key has made at most ``max_requests`` requests in the current
window; the counting itself is delegated to a CounterStore.

Failure policy (fail open):
- If the counter store errors or does not answer within the timeout, the
  request is allowed with a full quota and a warning is logged
- A counter store outage therefore disables rate limiting until it recovers;
  the warnings are the signal to watch for
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from math import ceil
from typing import Dict, Optional

from linkrotator.services.counter_store import CounterStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 10
DEFAULT_MAX_REQUESTS = 100
DEFAULT_TIMEOUT_SECONDS = 0.5


@dataclass
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed
        limit: Maximum requests in the window
        remaining: Requests remaining in current window
        reset_at: When the rate limit window resets
        retry_after_seconds: Seconds to wait before retrying (if not allowed)
        identifier: The key that was checked
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after_seconds: Optional[int] = None
    identifier: Optional[str] = None

    def to_headers(self) -> Dict[str, str]:
        """Generate X-RateLimit-* headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at.isoformat(),
        }

        if not self.allowed and self.retry_after_seconds:
            headers["Retry-After"] = str(self.retry_after_seconds)

        return headers


class RateLimiter:
    """
    Window-counting admission gate with fail-open semantics.
    
    Example:
        >>> limiter = RateLimiter(InMemoryCounterStore())
        >>> result = await limiter.check("redirect:203.0.113.7")
        >>> result.allowed
        True
    """
    
    def __init__(
        self,
        store: CounterStore,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        enabled: bool = True,
    ):
        """
        Initialize the rate limiter.
        
        Args:
            store: Counter store performing the atomic increment
            window_seconds: Default window length (default: 10)
            max_requests: Default requests per window (default: 100)
            timeout_seconds: Store call timeout; a timeout counts as an outage
            enabled: When False every request is allowed without touching the store
        """
        self.store = store
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled
    
    def _allow(self, key: str, window_seconds: int, max_requests: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=max_requests,
            remaining=max_requests,
            reset_at=datetime.now(timezone.utc) + timedelta(seconds=window_seconds),
            identifier=key,
        )
    
    async def check(
        self,
        key: str,
        window_seconds: Optional[int] = None,
        max_requests: Optional[int] = None,
    ) -> RateLimitResult:
        """
        Count this request and decide whether it is admitted.
        
        Args:
            key: Client key, typically "<operation>:<client ip>"
            window_seconds: Window length, defaults to the limiter's
            max_requests: Requests per window, defaults to the limiter's
        
        Returns:
            RateLimitResult; never raises for store failures
        """
        window_seconds = self.window_seconds if window_seconds is None else window_seconds
        max_requests = self.max_requests if max_requests is None else max_requests
        
        if window_seconds <= 0 or max_requests <= 0:
            raise ValueError("window_seconds and max_requests must be positive")
        
        if not self.enabled:
            return self._allow(key, window_seconds, max_requests)
        
        try:
            allowed, count, reset_at = await asyncio.wait_for(
                self.store.increment_and_check(key, window_seconds, max_requests),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Rate limit check for '{key}' timed out after {self.timeout_seconds}s, allowing request"
            )
            return self._allow(key, window_seconds, max_requests)
        except Exception as e:
            # Fail open: never block traffic on counter store errors
            logger.warning(f"Rate limit check for '{key}' failed, allowing request: {e}", exc_info=True)
            return self._allow(key, window_seconds, max_requests)
        
        retry_after = None
        if not allowed:
            wait = (reset_at - datetime.now(timezone.utc)).total_seconds()
            retry_after = max(1, ceil(wait))
            logger.info(f"Rate limit exceeded for '{key}' ({count}/{max_requests})")
        
        return RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset_at=reset_at,
            retry_after_seconds=retry_after,
            identifier=key,
        )
    
    async def prune(self) -> int:
        """Drop elapsed windows of the default window length from the store."""
        return await self.store.prune(self.window_seconds)
    
    async def close(self) -> None:
        await self.store.close()
