"""
Core Type Definitions

Value types shared by the rotation engine, the simulation runner and the
API layer.

Design Decisions:
- Frozen pydantic models: a rule is an immutable value for the whole of one
  evaluation, so the engine can never alter what the caller stored
- Weights are validated per entry (0-100) but not in total; whether a rule
  may exceed 100% overall is decided by the authoring layer
- Secondary destinations are kept as stored, blank or zero-weight entries
  included; they are skipped when a distribution is built
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class RuleStatus(str, Enum):
    """Lifecycle status of a routing rule."""
    enabled = "enabled"
    disabled = "disabled"
    expired = "expired"


class SecondaryDestination(BaseModel):
    """A weighted alternative to the primary destination."""
    model_config = ConfigDict(frozen=True)

    destination_url: str = Field(default="", description="Full URL to redirect to")
    weight_percent: int = Field(default=0, ge=0, le=100, description="Share of traffic in percent")
    order_index: int = Field(default=0, description="Display and evaluation order")


class RoutingRule(BaseModel):
    """
    One redirect target configuration.
    
    The primary destination receives the residual weight
    (100 minus the sum of secondary weights, never below zero).
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Rule identifier")
    primary_destination: str = Field(..., description="Fallback URL, receives residual traffic")
    secondary_destinations: Tuple[SecondaryDestination, ...] = Field(default=())
    rotation_enabled: bool = Field(default=True, description="Whether traffic rotation is active")
    status: RuleStatus = Field(default=RuleStatus.enabled)


@dataclass(frozen=True)
class WeightedDestination:
    """One entry of the distribution built for a single evaluation."""
    url: str
    label: str
    weight: int
    is_primary: bool


class SimulationResult(BaseModel):
    """Observed share of simulated clicks for one destination."""
    url: str
    label: str
    configured_weight: int
    actual_hits: int
    actual_percentage: float
    is_primary: bool
