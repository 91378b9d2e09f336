"""
Database Models for the Link Rotation Service

This module defines the SQLModel database schemas for:
- RoutingRuleRecord: Stored rotation configuration of one tracking link
- RateWindow: Per-key request counter for redirect admission control

Design Decisions:
- Secondary destinations are stored as a JSON list, exactly as authored;
  blank and zero-weight entries are only skipped when a rule is evaluated
- The rule id doubles as its public slug (e.g. lnk-aB3xK9mN)
- RateWindow stores the window start as epoch seconds so that every
  service instance sharing the database agrees on it
"""

from datetime import datetime, timezone
from typing import List

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, DateTime, Integer, Float, Text, Boolean, JSON

from linkrotator.core.domain import RoutingRule, SecondaryDestination


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoutingRuleRecord(SQLModel, table=True):
    """
    Stored routing rule.
    
    Fields:
    - id: Public identifier, used in the redirect path
    - primary_destination: URL receiving residual traffic
    - secondary_destinations: JSON list of {destination_url, weight_percent, order_index}
    - rotation_enabled: Whether secondaries take part in the draw
    - status: enabled, disabled or expired
    - created_at / updated_at: Audit timestamps
    """
    __tablename__ = "routing_rules"
    
    id: str = Field(sa_column=Column(String(64), primary_key=True))
    primary_destination: str = Field(sa_column=Column(Text, nullable=False))
    secondary_destinations: List[dict] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list)
    )
    rotation_enabled: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True)
    )
    status: str = Field(
        default="enabled",
        sa_column=Column(String(16), nullable=False, default="enabled", index=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    
    def to_rule(self) -> RoutingRule:
        """Materialize the immutable rule handed to the rotation engine."""
        return RoutingRule(
            id=self.id,
            primary_destination=self.primary_destination,
            secondary_destinations=tuple(
                SecondaryDestination(**entry) for entry in self.secondary_destinations or []
            ),
            rotation_enabled=self.rotation_enabled,
            status=self.status,
        )


class RateWindow(SQLModel, table=True):
    """
    Rate-limit window for one client key.
    
    Fields:
    - key: Client key, e.g. "redirect:203.0.113.7"
    - window_start: Epoch seconds at which the current window opened
    - count: Requests seen in the current window, denied ones included
    
    The row is created by the first request for a key and reset in place
    once the window has elapsed.
    """
    __tablename__ = "rate_windows"
    
    key: str = Field(sa_column=Column(String(255), primary_key=True))
    window_start: float = Field(sa_column=Column(Float, nullable=False, index=True))
    count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
