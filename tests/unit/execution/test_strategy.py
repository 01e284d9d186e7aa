"""Tests for execution strategy assembly."""

import pytest

from smartroute.engine import RoutingEngine
from smartroute.execution.strategy import DEGRADED_CONFIDENCE, contingency_actions
from smartroute.models.market import MempoolStatus, UserPreferences
from smartroute.models.strategy import OrderSplitPlan, ProtectionDecision, ProtectionKind
from smartroute.models.types import RiskTier
from smartroute.services.mock import MockGasOracle

from tests.helpers import make_analysis, make_market, make_route

CALM = MempoolStatus(utilization=0.5, estimated_clear_time=0.0)


class TestStrategyGenerator:
    @pytest.mark.asyncio
    async def test_generates_tracked_strategy(self, engine: RoutingEngine) -> None:
        route = make_route(price_impact=0.005, estimated_time=12.0)

        strategy = await engine.strategies.generate(route, make_market(mempool=CALM))

        assert strategy.id.startswith("strategy-")
        assert strategy.route_id == route.id
        assert strategy.degraded is False
        assert 0.1 <= strategy.confidence <= 0.99
        assert strategy.execution_windows

        outcome = engine.outcomes.get(strategy.id)
        assert outcome is not None
        assert outcome.predictions.expected_slippage == route.price_impact
        assert outcome.predictions.expected_execution_time == pytest.approx(
            12.0 + strategy.timing.delay_recommended
        )
        assert outcome.predictions.risk_tier == strategy.risk_tier

    @pytest.mark.asyncio
    async def test_large_impact_is_split(self, engine: RoutingEngine) -> None:
        strategy = await engine.strategies.generate(make_route(price_impact=0.06), make_market(mempool=CALM))

        assert strategy.order_split.enabled is True
        assert strategy.order_split.number_of_parts == 4
        assert len(strategy.execution_windows) == 4
        assert "Split into 4 parts" in strategy.reasoning

    @pytest.mark.asyncio
    async def test_preferences_are_applied(self, engine: RoutingEngine) -> None:
        preferences = UserPreferences(mev_tolerance="high", urgency="immediate", gas_priority="economy")

        strategy = await engine.strategies.generate(make_route(), make_market(mempool=CALM), preferences)

        assert strategy.risk_tier == RiskTier.LOW
        assert strategy.protection.enabled is False
        assert strategy.timing.immediate is True
        assert strategy.gas_strategy.priority == "economy"
        assert strategy.gas_strategy.gas_price_gwei == 20.0

    @pytest.mark.asyncio
    async def test_gas_oracle_failure_uses_defaults(self, engine: RoutingEngine, gas_oracle: MockGasOracle) -> None:
        gas_oracle.fail = True

        strategy = await engine.strategies.generate(make_route(), make_market(mempool=CALM))

        assert strategy.degraded is False
        assert strategy.gas_strategy.gas_price_gwei == 30.0

    @pytest.mark.asyncio
    async def test_analysis_failure_yields_degraded_strategy(
        self, engine: RoutingEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom(*args: object, **kwargs: object) -> None:
            raise RuntimeError("analysis exploded")

        monkeypatch.setattr(engine.analyzer, "analyze", boom)
        route = make_route()

        strategy = await engine.strategies.generate(route, make_market())

        assert strategy.degraded is True
        assert strategy.confidence == DEGRADED_CONFIDENCE
        assert strategy.protection.enabled is False
        assert strategy.timing.immediate is True
        assert len(strategy.execution_windows) == 1
        assert engine.outcomes.get(strategy.id) is not None


class TestContingencyActions:
    def test_unprotected_elevated_risk(self) -> None:
        actions = contingency_actions(
            make_route(price_impact=0.03),
            make_analysis([0.6]),
            ProtectionDecision(enabled=False),
            OrderSplitPlan(enabled=False),
        )
        assert actions[0] == "Fallback to alternative route"
        assert "Split order if slippage exceeds the estimate" in actions
        assert "Enable additional MEV protection" in actions

    def test_protected_split_order(self) -> None:
        actions = contingency_actions(
            make_route(price_impact=0.03),
            make_analysis([0.6]),
            ProtectionDecision(enabled=True, kind=ProtectionKind.PRIVATE_MEMPOOL, estimated_protection=0.9),
            OrderSplitPlan(enabled=True, number_of_parts=3, size_distribution=[0.3, 0.3, 0.4]),
        )
        assert "Split order further if part slippage exceeds the estimate" in actions
        assert "Enable additional MEV protection if private_mempool is unavailable" in actions

    def test_small_low_risk_trade(self) -> None:
        actions = contingency_actions(
            make_route(price_impact=0.001),
            make_analysis([0.1]),
            ProtectionDecision(enabled=False),
            OrderSplitPlan(enabled=False),
        )
        assert len(actions) == 2
