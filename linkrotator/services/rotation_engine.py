"""
Probabilistic Rotation Engine

This service decides which destination a single redirect goes to.

Algorithm:
1. Build the weighted destination list from the rule
   (residual weight goes to the primary destination)
2. Draw a random number r in [0, 1)
3. Walk the cumulative distribution and return the first destination
   whose cumulative share exceeds r

Design Decisions:
- Non-sticky: every request is an independent draw
- Stable walk order (primary first, then secondaries by order_index), so a
  given rule and a given r always produce the same destination
- Injectable random source: tests use a seeded generator, production uses
  OS entropy which has no shared generator state between threads
- Pure: no I/O, no logging, the rule is never modified
"""

import random
from typing import Callable, List, Optional, Sequence

from linkrotator.core.domain import RoutingRule, SecondaryDestination, WeightedDestination

RandomSource = Callable[[], float]

PRIMARY_LABEL = "Primary destination"
FULL_WEIGHT = 100

_system_random = random.SystemRandom()


def default_random_source() -> float:
    """Uniform float in [0, 1) drawn from the operating system's entropy pool."""
    return _system_random.random()


def usable_secondaries(rule: RoutingRule) -> List[SecondaryDestination]:
    """Secondary destinations that take part in a draw, in evaluation order."""
    usable = [
        s for s in rule.secondary_destinations
        if s.destination_url.strip() != "" and s.weight_percent > 0
    ]
    return sorted(usable, key=lambda s: s.order_index)


def build_weighted_destinations(rule: RoutingRule) -> List[WeightedDestination]:
    """
    Build the list of weighted destinations including the primary fallback.
    
    Residual weight (100 - sum of secondary weights, clamped at zero) goes to
    the primary destination. The primary is left out when it has no residual
    weight, unless there are no usable secondaries at all.
    """
    secondaries = usable_secondaries(rule)
    secondary_weight = sum(s.weight_percent for s in secondaries)
    primary_weight = max(0, FULL_WEIGHT - secondary_weight)
    
    destinations = []
    
    if primary_weight > 0 or not secondaries:
        destinations.append(WeightedDestination(
            url=rule.primary_destination,
            label=PRIMARY_LABEL,
            weight=primary_weight if secondaries else FULL_WEIGHT,
            is_primary=True,
        ))
    
    for secondary in secondaries:
        destinations.append(WeightedDestination(
            url=secondary.destination_url,
            label=f"Secondary #{secondary.order_index + 1}",
            weight=secondary.weight_percent,
            is_primary=False,
        ))
    
    return destinations


def total_weight(destinations: Sequence[WeightedDestination]) -> int:
    return sum(d.weight for d in destinations)


def draw_index(destinations: Sequence[WeightedDestination], weight_sum: int, r: float) -> int:
    """
    Position of the destination selected by ``r`` in the cumulative walk.
    
    If rounding leaves ``r`` above the final cumulative value, the last
    destination is returned.
    """
    cumulative = 0.0
    for index, destination in enumerate(destinations):
        cumulative += destination.weight / weight_sum
        if r < cumulative:
            return index
    return len(destinations) - 1


class RotationEngine:
    """
    Weighted, stateless destination selection.
    
    The engine holds nothing but its random source, so one instance can be
    shared by every request handler.
    """
    
    def __init__(self, random_source: Optional[RandomSource] = None):
        """
        Initialize the rotation engine.
        
        Args:
            random_source: Callable returning a float in [0, 1).
                Defaults to OS entropy.
        """
        self.random_source = random_source or default_random_source
    
    def distribution(self, rule: RoutingRule) -> List[WeightedDestination]:
        return build_weighted_destinations(rule)
    
    def pick(self, destinations: Sequence[WeightedDestination]) -> int:
        """
        Draw once from a prepared distribution.
        
        Returns:
            Index into ``destinations``
        """
        return draw_index(destinations, total_weight(destinations), self.random_source())
    
    def select(self, rule: RoutingRule) -> str:
        """
        Select a single destination URL for one request.
        
        Returns the primary destination without consuming randomness when
        rotation is off or no secondary destination is usable.
        """
        if not rule.rotation_enabled or not usable_secondaries(rule):
            return rule.primary_destination
        
        destinations = self.distribution(rule)
        if total_weight(destinations) == 0:
            return rule.primary_destination
        
        return destinations[self.pick(destinations)].url


_default_engine = RotationEngine()


def select_destination(rule: RoutingRule, random_source: Optional[RandomSource] = None) -> str:
    """Module-level shortcut for :meth:`RotationEngine.select`."""
    if random_source is None:
        return _default_engine.select(rule)
    return RotationEngine(random_source).select(rule)
