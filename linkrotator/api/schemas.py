"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Design Principles:
- Request models: Define input validation, including the rule that
  secondary weights may not add up to more than 100%
- Response models: Define output structure
- The rotation engine itself accepts any weights; the limit is enforced here
"""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from linkrotator.core.domain import RoutingRule, RuleStatus, SecondaryDestination


class RuleConfig(BaseModel):
    """Rotation configuration shared by rule creation and ad-hoc simulation."""
    primary_destination: str = Field(..., description="URL receiving residual traffic")
    secondary_destinations: List[SecondaryDestination] = Field(default_factory=list)
    rotation_enabled: bool = Field(default=True)

    @model_validator(mode="after")
    def check_total_weight(self) -> "RuleConfig":
        total = sum(s.weight_percent for s in self.secondary_destinations)
        if total > 100:
            raise ValueError(f"Secondary weights add up to {total}%, the maximum is 100%")
        return self

    def to_rule(self, rule_id: str = "") -> RoutingRule:
        return RoutingRule(
            id=rule_id,
            primary_destination=self.primary_destination,
            secondary_destinations=tuple(self.secondary_destinations),
            rotation_enabled=self.rotation_enabled,
        )


class CreateRuleRequest(RuleConfig):
    """Request model for rule creation."""
    id: Optional[str] = Field(default=None, description="Rule id; generated when omitted")
    status: RuleStatus = Field(default=RuleStatus.enabled)


class RuleResponse(BaseModel):
    """Response model for a stored rule."""
    id: str
    tracking_url: str = Field(..., description="Public URL that performs the redirect")
    primary_destination: str
    secondary_destinations: List[SecondaryDestination]
    rotation_enabled: bool
    status: RuleStatus

    @classmethod
    def from_rule(cls, rule: RoutingRule, base_url: str) -> "RuleResponse":
        return cls(
            id=rule.id,
            tracking_url=f"{base_url}/{rule.id}",
            primary_destination=rule.primary_destination,
            secondary_destinations=list(rule.secondary_destinations),
            rotation_enabled=rule.rotation_enabled,
            status=rule.status,
        )


class SimulateRequest(RuleConfig):
    """Request model for simulating an unsaved rule."""
    iterations: Optional[int] = Field(default=None, description="Simulated clicks")
