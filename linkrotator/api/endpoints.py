"""
FastAPI Endpoints for the Link Rotation Service

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Request validation (Pydantic models)
- Rate limiting
- Error handling and HTTP responses
- Delegating to service layer

Design Principles:
- Thin endpoints: Only validation and rate limiting
- Service layer: All business logic
- The redirect path is gated by the RateLimiter service (fails open);
  authoring endpoints use slowapi limits
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from linkrotator.api.schemas import CreateRuleRequest, RuleResponse, SimulateRequest
from linkrotator.core.domain import RoutingRule, SimulationResult
from linkrotator.core.exceptions import (
    DatabaseError,
    InvalidRuleIdError,
    InvalidURLError,
    RuleConflictError,
    RuleInactiveError,
    RuleNotFoundError,
    SlugExhaustedError,
)
from linkrotator.core.limiter_manager import get_rate_limiter
from linkrotator.core.rate_limit import get_client_ip, limiter, RATE_LIMITS
from linkrotator.core.setting import settings
from linkrotator.core.utm import append_utm_params, extract_utm_params
from linkrotator.core.validators import sanitize_rule_id
from linkrotator.db.session import get_session
from linkrotator.services.rate_limiter import RateLimiter
from linkrotator.services.redirect_service import RedirectService
from linkrotator.services.rule_service import RoutingRuleService
from linkrotator.services.simulation_runner import SimulationRunner

logger = logging.getLogger(__name__)

router = APIRouter()

simulation_runner = SimulationRunner()


def require_rule_id(rule_id: str) -> str:
    sanitized_id = sanitize_rule_id(rule_id)
    if not sanitized_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid rule id format: '{rule_id}'. Rule ids may only contain letters, digits and hyphens."
        )
    return sanitized_id


def resolve_iterations(iterations: Optional[int]) -> int:
    if iterations is None:
        return settings.SIMULATION_DEFAULT_ITERATIONS
    if iterations > settings.SIMULATION_MAX_ITERATIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.SIMULATION_MAX_ITERATIONS} iterations per simulation"
        )
    return iterations


@router.post(
    "/rules",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a routing rule",
    description="Stores a rotation configuration and returns its tracking URL"
)
@limiter.limit(RATE_LIMITS["create_rule"])
async def create_rule(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    body: CreateRuleRequest,
    session: AsyncSession = Depends(get_session)
) -> RuleResponse:
    """
    Create a new routing rule.
    
    Raises:
        HTTPException 400: If a URL or the supplied id is invalid
        HTTPException 409: If the supplied id is taken
        HTTPException 422: If secondary weights exceed 100%
        HTTPException 500: If no id could be generated or the database fails
    """
    rule_service = RoutingRuleService(session)
    
    try:
        rule = await rule_service.create_rule(
            primary_destination=body.primary_destination,
            secondary_destinations=body.secondary_destinations,
            rotation_enabled=body.rotation_enabled,
            status=body.status,
            rule_id=body.id,
        )
    except (InvalidURLError, InvalidRuleIdError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except RuleConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SlugExhaustedError as e:
        logger.error(f"Rule id generation exhausted: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    
    return RuleResponse.from_rule(rule, settings.BASE_URL)


@router.get(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    summary="Get a routing rule",
    description="Returns the stored rotation configuration of a rule"
)
@limiter.limit(RATE_LIMITS["read_rule"])
async def get_rule(
    rule_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> RuleResponse:
    rule_id = require_rule_id(rule_id)
    rule = await RoutingRuleService(session).get_rule(rule_id)
    if not rule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Routing rule '{rule_id}' not found"
        )
    return RuleResponse.from_rule(rule, settings.BASE_URL)


@router.post(
    "/rules/{rule_id}/simulate",
    response_model=List[SimulationResult],
    summary="Simulate a stored rule",
    description="Draws N independent destinations and reports observed shares per destination"
)
@limiter.limit(RATE_LIMITS["simulate"])
async def simulate_rule(
    rule_id: str,
    request: Request,
    iterations: Optional[int] = Query(default=None),
    session: AsyncSession = Depends(get_session)
) -> List[SimulationResult]:
    rule_id = require_rule_id(rule_id)
    iterations = resolve_iterations(iterations)
    
    rule = await RoutingRuleService(session).get_rule(rule_id)
    if not rule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Routing rule '{rule_id}' not found"
        )
    return simulation_runner.simulate(rule, iterations)


@router.post(
    "/simulate",
    response_model=List[SimulationResult],
    summary="Simulate an unsaved rule",
    description="Same as rule simulation, for a configuration that has not been stored yet"
)
@limiter.limit(RATE_LIMITS["simulate"])
async def simulate_config(
    request: Request,
    body: SimulateRequest,
) -> List[SimulationResult]:
    iterations = resolve_iterations(body.iterations)
    rule: RoutingRule = body.to_rule()
    return simulation_runner.simulate(rule, iterations)


@router.get(
    "/{rule_id}",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Redirect to a rotated destination",
    description="Admits the request, draws a destination for the rule and redirects to it"
)
async def redirect_to_destination(
    rule_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Redirect to one of the rule's destinations.
    
    Every request is an independent draw (307, never cached as permanent).
    
    Raises:
        HTTPException 400: If rule id format is invalid
        HTTPException 404: If rule not found
        HTTPException 410: If rule is disabled or expired
    """
    rule_id = require_rule_id(rule_id)
    redirect_service = RedirectService(session, rate_limiter)
    
    admission = await redirect_service.admit(get_client_ip(request))
    if not admission.allowed:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Rate limit exceeded"},
            headers=admission.to_headers(),
        )
    
    try:
        destination = await redirect_service.get_redirect_url(rule_id)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RuleInactiveError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    
    if settings.PROPAGATE_UTM_PARAMS:
        destination = append_utm_params(destination, extract_utm_params(request.query_params))
    
    return RedirectResponse(
        url=destination,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers=admission.to_headers(),
    )
