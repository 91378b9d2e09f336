"""
Tests for the rotation simulation.
"""

import random
from collections import Counter

import pytest

from linkrotator.core.domain import RoutingRule, SecondaryDestination
from linkrotator.services.rotation_engine import RotationEngine
from linkrotator.services.simulation_runner import SimulationRunner, simulate_clicks

PRIMARY = "https://a.example"


def make_rule(*secondaries, rotation_enabled=True):
    return RoutingRule(
        primary_destination=PRIMARY,
        secondary_destinations=tuple(
            SecondaryDestination(destination_url=url, weight_percent=weight, order_index=index)
            for index, (url, weight) in enumerate(secondaries)
        ),
        rotation_enabled=rotation_enabled,
    )


class TestSimulationRunner:

    @pytest.mark.parametrize("iterations", [0, -1, -1000])
    def test_non_positive_iterations_return_empty(self, iterations):
        """Test that zero or negative iterations give no results."""
        assert simulate_clicks(make_rule(("https://b.example", 40)), iterations) == []

    def test_hits_add_up_and_percentages_match(self):
        """Test that hits sum to iterations and percentages follow hits."""
        results = simulate_clicks(make_rule(("https://b.example", 40)), 1_000, random.Random(3).random)
        assert sum(r.actual_hits for r in results) == 1_000
        for result in results:
            assert result.actual_percentage == pytest.approx(result.actual_hits / 10)

    def test_result_fields(self):
        """Test labels, weights and primary flags of the results."""
        results = simulate_clicks(make_rule(("https://b.example", 25)), 10, random.Random(3).random)
        assert [(r.url, r.label, r.configured_weight, r.is_primary) for r in results] == [
            (PRIMARY, "Primary destination", 75, True),
            ("https://b.example", "Secondary #1", 25, False),
        ]

    def test_matches_live_selection_for_the_same_seed(self):
        """Test that simulation and live selection agree for one seed."""
        rule = make_rule(("https://b.example", 20), ("https://c.example", 30))
        engine = RotationEngine(random.Random(11).random)
        live = Counter(engine.select(rule) for _ in range(5_000))

        results = SimulationRunner(RotationEngine(random.Random(11).random)).simulate(rule, 5_000)
        assert {r.url: r.actual_hits for r in results} == dict(live)

    def test_duplicate_urls_are_counted_separately(self):
        """Test that two entries sharing a URL keep separate counts."""
        rule = make_rule(("https://b.example", 50), ("https://b.example", 50))
        results = simulate_clicks(rule, 2_000, random.Random(8).random)
        assert len(results) == 2
        assert all(r.actual_hits > 0 for r in results)
        assert sum(r.actual_hits for r in results) == 2_000

    def test_configured_weights_simulated_when_rotation_disabled(self):
        """Test that the configured split is simulated even with rotation off."""
        rule = make_rule(("https://b.example", 100), rotation_enabled=False)
        results = simulate_clicks(rule, 100, random.Random(1).random)
        assert [(r.url, r.actual_hits) for r in results] == [("https://b.example", 100)]

    def test_observed_shares_converge(self):
        """Test that observed shares approach configured weights."""
        rule = make_rule(("https://b.example", 30), ("https://c.example", 30))
        results = simulate_clicks(rule, 100_000, random.Random(2024).random)
        for result in results:
            assert result.actual_percentage == pytest.approx(result.configured_weight, abs=1.0)

    def test_rule_is_not_modified(self):
        """Test that simulation leaves the rule untouched."""
        rule = make_rule(("https://b.example", 40))
        snapshot = rule.model_dump()
        simulate_clicks(rule, 100)
        assert rule.model_dump() == snapshot
