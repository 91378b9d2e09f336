"""
Rotation Simulation

Runs a Monte Carlo simulation of N clicks against a routing rule so an
operator can compare configured weights with observed behaviour before a
link goes live.

Design Decisions:
- Uses the rotation engine's own distribution builder and draw routine;
  the only difference from a live redirect is that every draw is recorded
- Hits are counted per position in the distribution, so two entries that
  share a URL keep separate counts
- Configured weights are simulated even when rotation is switched off on
  the rule
"""

from typing import List, Optional

from linkrotator.core.domain import RoutingRule, SimulationResult
from linkrotator.services.rotation_engine import RandomSource, RotationEngine, total_weight


class SimulationRunner:
    """Repeated-draw statistics over a routing rule."""
    
    def __init__(self, engine: Optional[RotationEngine] = None):
        self.engine = engine or RotationEngine()
    
    def simulate(self, rule: RoutingRule, iterations: int) -> List[SimulationResult]:
        """
        Simulate ``iterations`` independent redirects.
        
        Args:
            rule: The routing rule to exercise
            iterations: Number of simulated clicks
        
        Returns:
            One result per destination in walk order, or an empty list
            when ``iterations`` is not positive
        """
        if iterations <= 0:
            return []
        
        destinations = self.engine.distribution(rule)
        if total_weight(destinations) == 0:
            return []
        
        hits = [0] * len(destinations)
        for _ in range(iterations):
            hits[self.engine.pick(destinations)] += 1
        
        return [
            SimulationResult(
                url=destination.url,
                label=destination.label,
                configured_weight=destination.weight,
                actual_hits=count,
                actual_percentage=count / iterations * 100,
                is_primary=destination.is_primary,
            )
            for destination, count in zip(destinations, hits)
        ]


def simulate_clicks(
    rule: RoutingRule,
    iterations: int = 1000,
    random_source: Optional[RandomSource] = None,
) -> List[SimulationResult]:
    """Run a simulation with a fresh engine."""
    return SimulationRunner(RotationEngine(random_source)).simulate(rule, iterations)
