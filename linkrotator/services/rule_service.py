"""
Routing Rule Service

This service handles storage-side work for routing rules:
- Minting identifiers for new rules
- Persisting new rules
- Loading stored rules as immutable RoutingRule values

Design Decisions:
- Generated ids use the "lnk-" namespace and are checked against every
  id already stored
- Operator-supplied ids are sanitized and must not be taken
- Total secondary weight is validated by the API schemas; records are
  stored exactly as authored
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkrotator.core.domain import RoutingRule, RuleStatus, SecondaryDestination
from linkrotator.core.exceptions import (
    DatabaseError,
    InvalidRuleIdError,
    InvalidURLError,
    RuleConflictError,
)
from linkrotator.core.setting import settings
from linkrotator.core.validators import is_reserved_rule_id, is_valid_url, sanitize_rule_id
from linkrotator.db.models import RoutingRuleRecord
from linkrotator.services.slug_generator import LINK_PREFIX, generate_unique_slug

logger = logging.getLogger(__name__)


class RoutingRuleService:
    """
    Core storage logic for routing rules.
    
    Separated from the API layer for testability.
    """
    
    def __init__(self, session: AsyncSession):
        """
        Initialize the rule service.
        
        Args:
            session: Database session
        """
        self.session = session
    
    async def get_existing_ids(self) -> Set[str]:
        result = await self.session.execute(select(RoutingRuleRecord.id))
        return set(result.scalars().all())
    
    async def mint_rule_id(self) -> str:
        """
        Generate an id that no stored rule uses yet.
        
        Raises:
            SlugExhaustedError: If every attempt collided
        """
        existing_ids = await self.get_existing_ids()
        return generate_unique_slug(
            existing_ids,
            prefix=LINK_PREFIX,
            length=settings.SLUG_LENGTH,
            max_attempts=settings.SLUG_MAX_ATTEMPTS,
        )
    
    async def get_record(self, rule_id: str) -> Optional[RoutingRuleRecord]:
        statement = select(RoutingRuleRecord).where(RoutingRuleRecord.id == rule_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()
    
    async def get_rule(self, rule_id: str) -> Optional[RoutingRule]:
        """
        Retrieve a stored rule.
        
        Returns:
            RoutingRule if found, None otherwise
        """
        record = await self.get_record(rule_id)
        return record.to_rule() if record else None
    
    async def create_rule(
        self,
        primary_destination: str,
        secondary_destinations: Sequence[SecondaryDestination] = (),
        rotation_enabled: bool = True,
        status: RuleStatus = RuleStatus.enabled,
        rule_id: Optional[str] = None,
    ) -> RoutingRule:
        """
        Persist a new routing rule.
        
        Args:
            primary_destination: URL receiving residual traffic
            secondary_destinations: Weighted alternatives, stored as given
            rotation_enabled: Whether secondaries take part in the draw
            status: Initial lifecycle status
            rule_id: Operator-chosen id; minted when omitted
        
        Returns:
            The stored rule
        
        Raises:
            InvalidURLError: If a destination URL is invalid
            InvalidRuleIdError: If rule_id is malformed
            RuleConflictError: If rule_id is already taken
            SlugExhaustedError: If no free id could be generated
            DatabaseError: If the database operation fails
        """
        if not is_valid_url(primary_destination):
            raise InvalidURLError(
                primary_destination,
                reason="Invalid URL format. URL must use http:// or https:// and have a valid domain"
            )
        for secondary in secondary_destinations:
            if secondary.destination_url.strip() and not is_valid_url(secondary.destination_url):
                raise InvalidURLError(secondary.destination_url, reason="Invalid secondary destination")
        
        if rule_id is not None:
            sanitized_id = sanitize_rule_id(rule_id)
            if not sanitized_id:
                raise InvalidRuleIdError(rule_id)
            if is_reserved_rule_id(sanitized_id):
                raise InvalidRuleIdError(sanitized_id, reason="This id is reserved for a service route")
            if await self.get_record(sanitized_id):
                raise RuleConflictError(sanitized_id)
            rule_id = sanitized_id
        else:
            rule_id = await self.mint_rule_id()
        
        now = datetime.now(timezone.utc)
        record = RoutingRuleRecord(
            id=rule_id,
            primary_destination=primary_destination,
            secondary_destinations=[s.model_dump() for s in secondary_destinations],
            rotation_enabled=rotation_enabled,
            status=RuleStatus(status).value,
            created_at=now,
            updated_at=now,
        )
        
        try:
            self.session.add(record)
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise RuleConflictError(rule_id) from e
        except Exception as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to create routing rule: {str(e)}", original_error=e)
        
        logger.info(f"Routing rule created: {rule_id}")
        return record.to_rule()
