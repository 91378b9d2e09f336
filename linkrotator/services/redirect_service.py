"""
Redirect Service

This service handles the live redirect decision for one request:
1. Admission control (rate limit per client)
2. Rule lookup
3. Destination selection by the rotation engine

Design Decisions:
- Admission runs before the rule lookup, so a denied request costs no
  database read
- Disabled and expired rules are reported, not redirected
- The HTTP layer turns the outcome into 429 / 404 / 410 / 307 responses
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from linkrotator.core.domain import RuleStatus
from linkrotator.core.exceptions import RuleInactiveError, RuleNotFoundError
from linkrotator.services.rate_limiter import RateLimiter, RateLimitResult
from linkrotator.services.rotation_engine import RotationEngine
from linkrotator.services.rule_service import RoutingRuleService

REDIRECT_OPERATION = "redirect"

_engine = RotationEngine()


class RedirectService:
    """
    Service for handling probabilistic redirections.
    
    This service encapsulates redirect logic, making it easy to
    move to a separate microservice if needed.
    """
    
    def __init__(
        self,
        session: AsyncSession,
        rate_limiter: RateLimiter,
        engine: Optional[RotationEngine] = None,
    ):
        """
        Initialize the redirect service.
        
        Args:
            session: Async database session for rule lookups
            rate_limiter: Admission gate for the redirect path
            engine: Rotation engine (shared default when omitted)
        """
        self.session = session
        self.rate_limiter = rate_limiter
        self.engine = engine or _engine
        self.rule_service = RoutingRuleService(session)
    
    async def admit(self, client_ip: str) -> RateLimitResult:
        """Run the admission check for one client."""
        return await self.rate_limiter.check(f"{REDIRECT_OPERATION}:{client_ip}")
    
    async def get_redirect_url(self, rule_id: str) -> str:
        """
        Select the destination for one redirect.
        
        Returns:
            Destination URL
        
        Raises:
            RuleNotFoundError: If no rule has this id
            RuleInactiveError: If the rule is disabled or expired
        """
        rule = await self.rule_service.get_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        
        if rule.status != RuleStatus.enabled:
            raise RuleInactiveError(rule_id, rule.status.value)
        
        return self.engine.select(rule)
