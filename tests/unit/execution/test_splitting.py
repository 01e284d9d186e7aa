"""Tests for order split planning."""

import random

import pytest

from smartroute.config import RiskConfig
from smartroute.execution.splitting import OrderSplitPlanner, number_of_parts
from smartroute.execution.timing import TimingOptimizer
from smartroute.models.market import MempoolStatus
from smartroute.models.strategy import TimingAnalysis
from smartroute.models.types import RiskTier

from tests.helpers import make_analysis, make_market, make_route


def calm_timing() -> TimingAnalysis:
    market = make_market(mempool=MempoolStatus(utilization=0.5, estimated_clear_time=0.0))
    return TimingOptimizer().analyze(make_route(), market, [])


def planner(seed: int = 0) -> OrderSplitPlanner:
    return OrderSplitPlanner(RiskConfig(), random.Random(seed))


class TestNumberOfParts:
    @pytest.mark.parametrize(("impact", "parts"), [(0.06, 4), (0.03, 3), (0.015, 2), (0.05, 3), (0.02, 2)])
    def test_parts_by_impact(self, impact: float, parts: int) -> None:
        assert number_of_parts(impact) == parts


class TestOrderSplitPlanner:
    @pytest.mark.parametrize(("impact", "parts"), [(0.06, 4), (0.03, 3), (0.015, 2)])
    def test_split_by_impact(self, impact: float, parts: int) -> None:
        plan = planner().plan(make_route(price_impact=impact), make_analysis([0.1]), calm_timing())

        assert plan.enabled is True
        assert plan.number_of_parts == parts
        assert len(plan.size_distribution) == parts
        assert sum(plan.size_distribution) == pytest.approx(1.0, abs=1e-6)

    def test_small_low_risk_trade_not_split(self) -> None:
        plan = planner().plan(make_route(price_impact=0.005), make_analysis([0.1]), calm_timing())
        assert plan.enabled is False
        assert plan.size_distribution == [1.0]

    def test_elevated_risk_forces_split(self) -> None:
        analysis = make_analysis([0.6], tier=RiskTier.HIGH)
        plan = planner().plan(make_route(price_impact=0.005), analysis, calm_timing())
        assert plan.enabled is True
        assert plan.number_of_parts == 2

    def test_sizes_jittered_within_bounds(self) -> None:
        for seed in range(20):
            plan = planner(seed).plan(make_route(price_impact=0.06), make_analysis([0.1]), calm_timing())
            for size in plan.size_distribution:
                assert 0.95 / 1.05 / 4 - 1e-9 <= size <= 1.05 / 0.95 / 4 + 1e-9
            assert sum(plan.size_distribution) == pytest.approx(1.0, abs=1e-6)

    def test_interval_jittered_around_minimum(self) -> None:
        for seed in range(20):
            plan = planner(seed).plan(make_route(price_impact=0.03), make_analysis([0.1]), calm_timing())
            assert 20.0 <= plan.time_between_parts <= 40.0
            assert plan.randomized is True

    def test_same_seed_same_plan(self) -> None:
        route = make_route(price_impact=0.03)
        first = planner(7).plan(route, make_analysis([0.1]), calm_timing())
        second = planner(7).plan(route, make_analysis([0.1]), calm_timing())
        assert first == second

    def test_estimated_improvements(self) -> None:
        analysis = make_analysis([0.1], sandwich_impact=100.0)
        plan = planner().plan(make_route(price_impact=0.06), analysis, calm_timing(), trade_value=10_000.0)

        improvements = plan.estimated_improvements
        assert improvements.slippage_reduction == pytest.approx(0.06 * (1 - 1 / 2))
        assert improvements.mev_reduction == pytest.approx(60.0)
        assert improvements.total_cost_reduction == pytest.approx(0.03 * 10_000.0 + 60.0)
